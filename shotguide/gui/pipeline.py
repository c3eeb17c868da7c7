from __future__ import annotations

import threading
from dataclasses import replace
from typing import Callable, Optional

from shotguide.errors import ShotGuideError
from shotguide.gui.state import Phase, PipelineState
from shotguide.types import FormState

PLANNING_MESSAGE = "Step 1/2: Generating creative scene prompts..."
UNKNOWN_ERROR_MESSAGE = "An unknown error occurred."


def rendering_message(index: int, total: int) -> str:
    return f"Step 2/2: Rendering image {index + 1} of {total}..."


class GenerationPipeline:
    """Two-phase generation run: plan the scene, then render each shot in order.

    Responsibilities:
    - Publish an immutable `PipelineState` after every step through `on_change`
    - Discard results from runs superseded by `reset()` or a newer run (epoch guard)
    - Centralize logging through an injected callback

    `service` must provide `request_scene_plan(category, style, images)` and
    `request_shot_image(prompt, shot_type)`.
    """

    def __init__(
        self,
        service,
        on_change: Optional[Callable[[PipelineState], None]] = None,
        on_log: Optional[Callable[[str], None]] = None,
    ) -> None:
        self.service = service
        self.on_change: Callable[[PipelineState], None] = on_change or (lambda _state: None)
        self.on_log: Callable[[str], None] = on_log or (lambda _msg: None)
        self._lock = threading.Lock()
        # Held across a state swap and its on_change call so listeners see snapshots in swap order
        self._publish_lock = threading.RLock()
        self._epoch = 0
        self._state = PipelineState()

    @property
    def state(self) -> PipelineState:
        with self._lock:
            return self._state

    # ---------- State transitions ----------
    def _publish(self, state: PipelineState) -> None:
        try:
            self.on_change(state)
        except Exception as e:  # noqa: BLE001
            self.on_log(f"⚠️  State listener failed: {e}")

    def _begin(self) -> int:
        with self._publish_lock:
            with self._lock:
                self._epoch += 1
                epoch = self._epoch
                self._state = PipelineState(phase=Phase.PLANNING, progress=PLANNING_MESSAGE, epoch=epoch)
                state = self._state
            self._publish(state)
        return epoch

    def _apply(self, epoch: int, **changes) -> bool:
        """Replace and publish the current snapshot if `epoch` is still the live run."""
        with self._publish_lock:
            with self._lock:
                if epoch != self._epoch:
                    return False
                self._state = replace(self._state, **changes)
                state = self._state
            self._publish(state)
        return True

    def _apply_image(self, epoch: int, index: int, image_data_url: str, total: int) -> bool:
        with self._publish_lock:
            with self._lock:
                if epoch != self._epoch or self._state.scene is None:
                    return False
                scene = self._state.scene.with_image(index, image_data_url)
                if index + 1 < total:
                    self._state = replace(self._state, scene=scene, current_shot=index + 1, progress=rendering_message(index + 1, total))
                else:
                    self._state = replace(self._state, scene=scene, phase=Phase.COMPLETE, current_shot=None, progress="")
                state = self._state
            self._publish(state)
        return True

    def _fail(self, epoch: int, exc: Exception) -> None:
        message = str(exc) if isinstance(exc, ShotGuideError) and str(exc) else UNKNOWN_ERROR_MESSAGE
        self.on_log(f"❌ Generation failed: {exc}")
        if not self._apply(epoch, phase=Phase.ERROR, error=message, progress="", current_shot=None):
            self.on_log("↩️  Ignoring failure from a superseded run")

    def reset(self) -> None:
        with self._publish_lock:
            with self._lock:
                self._epoch += 1
                self._state = PipelineState(epoch=self._epoch)
                state = self._state
            self.on_log("♻️  Pipeline reset")
            self._publish(state)

    # ---------- High level flows ----------
    def generate(self, form: FormState) -> PipelineState:
        """Run the whole pipeline on the calling thread and return the final snapshot."""
        return self._run(self._begin(), form)

    def submit(self, form: FormState) -> threading.Thread:
        """Start a run on a daemon worker thread and return the thread.

        The PLANNING snapshot is published before this returns.
        """
        epoch = self._begin()

        def worker() -> None:
            self.on_log("🧵 Generation worker thread started")
            self._run(epoch, form)

        thread = threading.Thread(target=worker, daemon=True)
        thread.start()
        return thread

    def _run(self, epoch: int, form: FormState) -> PipelineState:
        self.on_log(f"🎬 Planning scene: category='{form.product_category}', {len(form.images)} image(s)")

        try:
            scene = self.service.request_scene_plan(form.product_category, form.style, form.images)
        except Exception as e:  # noqa: BLE001
            self._fail(epoch, e)
            return self.state

        scene = scene.without_images()
        total = len(scene.shots)
        if total:
            applied = self._apply(epoch, phase=Phase.RENDERING, scene=scene, current_shot=0, progress=rendering_message(0, total))
        else:
            applied = self._apply(epoch, phase=Phase.COMPLETE, scene=scene, progress="")
        if not applied:
            self.on_log("↩️  Discarding scene plan from a superseded run")
            return self.state
        self.on_log(f"✅ Scene {scene.scene_id} planned ({total} shots)")

        # One render at a time, in shot order
        for i, shot in enumerate(scene.shots):
            self.on_log(f"🎨 Rendering shot {shot.shot_number} ({i + 1}/{total}): {shot.shot_type}")
            try:
                image_data_url = self.service.request_shot_image(shot.prompt, shot.shot_type)
            except Exception as e:  # noqa: BLE001
                self._fail(epoch, e)
                return self.state
            if not self._apply_image(epoch, i, image_data_url, total):
                self.on_log(f"↩️  Discarding image for shot {shot.shot_number} from a superseded run")
                return self.state

        self.on_log("🎉 All shots rendered")
        return self.state
