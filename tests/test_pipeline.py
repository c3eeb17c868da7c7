from __future__ import annotations

import threading

from shotguide.errors import ImageGenerationError, PlanGenerationError
from shotguide.gui.pipeline import PLANNING_MESSAGE, UNKNOWN_ERROR_MESSAGE, GenerationPipeline
from shotguide.gui.state import Phase
from shotguide.types import FormState, SceneData, Shot, UploadedImage


def _scene(n: int = 4) -> SceneData:
    return SceneData(
        scene_id="scene-1",
        master_scene_description="A bright Japandi bathroom",
        master_product_description="[Digital Twin] freestanding tub",
        shots=tuple(Shot(shot_number=i + 1, shot_type=f"Shot Type {i + 1}", prompt=f"prompt {i + 1}") for i in range(n)),
    )


FORM = FormState(
    product_category="Bathtubs",
    style="Japandi",
    images=(UploadedImage(encoded_bytes="aGVsbG8=", media_type="image/png"),),
)


class FakeService:
    def __init__(self, scene=None, plan_error=None, fail_at=None, on_image=None):
        self.scene = scene if scene is not None else _scene()
        self.plan_error = plan_error
        self.fail_at = fail_at
        self.on_image = on_image
        self.plan_calls = []
        self.image_calls = []

    def request_scene_plan(self, category, style, images):
        self.plan_calls.append((category, style, images))
        if self.plan_error:
            raise self.plan_error
        return self.scene

    def request_shot_image(self, prompt, shot_type):
        index = len(self.image_calls)
        self.image_calls.append(prompt)
        if self.on_image:
            self.on_image(index)
        if self.fail_at == index:
            raise ImageGenerationError("Failed to generate an image. The model may have refused the prompt.")
        return f"data:image/jpeg;base64,IMG{index}"


def test_pipeline_init_without_runs():
    p = GenerationPipeline(FakeService())
    assert p.state.phase == Phase.IDLE
    assert p.state.scene is None


def test_successful_run_renders_each_shot_in_order():
    service = FakeService()
    snapshots = []
    p = GenerationPipeline(service, on_change=snapshots.append)

    final = p.generate(FORM)

    assert final.phase == Phase.COMPLETE
    assert final.progress == ""
    assert service.plan_calls == [("Bathtubs", "Japandi", FORM.images)]
    assert service.image_calls == ["prompt 1", "prompt 2", "prompt 3", "prompt 4"]
    assert [s.image_data_url for s in final.scene.shots] == [f"data:image/jpeg;base64,IMG{i}" for i in range(4)]

    # planning, scene adopted without images, then one snapshot per render
    assert snapshots[0].phase == Phase.PLANNING
    assert snapshots[0].progress == PLANNING_MESSAGE
    assert snapshots[0].scene is None
    assert snapshots[1].phase == Phase.RENDERING
    assert snapshots[1].scene.rendered_count == 0
    assert snapshots[1].progress == "Step 2/2: Rendering image 1 of 4..."
    renders = snapshots[2:]
    assert len(renders) == 4
    for i, snap in enumerate(renders):
        flags = [shot.is_rendered for shot in snap.scene.shots]
        assert flags == [j <= i for j in range(4)]


def test_copy_on_write_keeps_untouched_shots_identical():
    snapshots = []
    p = GenerationPipeline(FakeService(), on_change=snapshots.append)
    p.generate(FORM)
    before, after = snapshots[2].scene, snapshots[3].scene
    assert before is not after
    assert after.shots[0] is before.shots[0]
    assert before.shots[1].image_data_url is None
    assert after.shots[1].image_data_url is not None


def test_plan_images_from_remote_are_ignored():
    scene = _scene(2)
    scene = SceneData(
        scene_id=scene.scene_id,
        master_scene_description=scene.master_scene_description,
        master_product_description=scene.master_product_description,
        shots=tuple(Shot(s.shot_number, s.shot_type, s.prompt, "data:image/png;base64,stale") for s in scene.shots),
    )
    snapshots = []
    p = GenerationPipeline(FakeService(scene=scene), on_change=snapshots.append)
    p.generate(FORM)
    assert snapshots[1].scene.rendered_count == 0


def test_plan_failure_leaves_no_scene():
    service = FakeService(plan_error=PlanGenerationError("Failed to generate scene prompts from the AI."))
    p = GenerationPipeline(service)

    final = p.generate(FORM)

    assert final.phase == Phase.ERROR
    assert final.scene is None
    assert final.error == "Failed to generate scene prompts from the AI."
    assert service.image_calls == []


def test_image_failure_halts_and_keeps_rendered_shots():
    service = FakeService(fail_at=2)
    p = GenerationPipeline(service)

    final = p.generate(FORM)

    assert final.phase == Phase.ERROR
    assert final.error == "Failed to generate an image. The model may have refused the prompt."
    assert len(service.image_calls) == 3
    assert [s.is_rendered for s in final.scene.shots] == [True, True, False, False]


def test_unexpected_exception_reports_generic_message():
    p = GenerationPipeline(FakeService(plan_error=KeyError("boom")))
    final = p.generate(FORM)
    assert final.phase == Phase.ERROR
    assert final.error == UNKNOWN_ERROR_MESSAGE


def test_empty_shot_list_completes_immediately():
    service = FakeService(scene=_scene(0))
    final = GenerationPipeline(service).generate(FORM)
    assert final.phase == Phase.COMPLETE
    assert final.scene.shots == ()
    assert service.image_calls == []


def test_reset_clears_error_and_scene():
    p = GenerationPipeline(FakeService(fail_at=1))
    p.generate(FORM)
    assert p.state.phase == Phase.ERROR

    p.reset()

    assert p.state.phase == Phase.IDLE
    assert p.state.scene is None
    assert p.state.error is None


def test_reset_during_render_discards_late_result():
    holder = {}

    def on_image(index):
        if index == 2:
            holder["pipeline"].reset()

    service = FakeService(on_image=on_image)
    p = GenerationPipeline(service)
    holder["pipeline"] = p

    final = p.generate(FORM)

    assert final.phase == Phase.IDLE
    assert final.scene is None
    assert len(service.image_calls) == 3


def test_reset_while_worker_thread_waits_on_slow_render():
    started = threading.Event()
    release = threading.Event()

    def on_image(index):
        if index == 2:
            started.set()
            assert release.wait(timeout=5)

    service = FakeService(on_image=on_image)
    p = GenerationPipeline(service)

    worker = p.submit(FORM)
    assert started.wait(timeout=5)
    assert p.state.phase == Phase.RENDERING
    assert p.state.current_shot == 2

    p.reset()
    release.set()
    worker.join(timeout=5)

    assert not worker.is_alive()
    assert p.state.phase == Phase.IDLE
    assert p.state.scene is None
    assert len(service.image_calls) == 3


def test_submit_publishes_planning_before_returning():
    release = threading.Event()

    class SlowPlan(FakeService):
        def request_scene_plan(self, category, style, images):
            assert release.wait(timeout=5)
            return super().request_scene_plan(category, style, images)

    p = GenerationPipeline(SlowPlan())
    worker = p.submit(FORM)
    assert p.state.phase == Phase.PLANNING
    release.set()
    worker.join(timeout=5)
    assert p.state.phase == Phase.COMPLETE


def test_new_run_supersedes_previous_state():
    p = GenerationPipeline(FakeService(fail_at=0))
    p.generate(FORM)
    first_epoch = p.state.epoch

    p.service = FakeService()
    final = p.generate(FORM)

    assert final.epoch > first_epoch
    assert final.error is None
    assert final.phase == Phase.COMPLETE


def test_listener_errors_do_not_break_the_run():
    logs = []

    def bad_listener(_state):
        raise RuntimeError("ui gone")

    p = GenerationPipeline(FakeService(), on_change=bad_listener, on_log=logs.append)
    assert p.generate(FORM).phase == Phase.COMPLETE
    assert any("State listener failed" in line for line in logs)


def test_reset_during_slow_listener_leaves_idle_as_last_snapshot():
    blocked = threading.Event()
    release = threading.Event()
    seen = []

    def listener(state):
        seen.append(state)
        if (
            threading.current_thread() is not threading.main_thread()
            and state.phase == Phase.RENDERING
            and state.scene.rendered_count == 1
        ):
            blocked.set()
            assert release.wait(timeout=5)

    service = FakeService()
    p = GenerationPipeline(service, on_change=listener)

    worker = p.submit(FORM)
    assert blocked.wait(timeout=5)
    resetter = threading.Thread(target=p.reset, daemon=True)
    resetter.start()
    release.set()
    resetter.join(timeout=5)
    worker.join(timeout=5)

    assert not worker.is_alive()
    assert p.state.phase == Phase.IDLE
    assert seen[-1].phase == Phase.IDLE
    assert seen[-1].scene is None
