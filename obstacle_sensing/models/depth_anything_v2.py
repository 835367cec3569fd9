"""
obstacle_sensing.models.depth_anything_v2
-----------------------------------------
Depth Anything V2 (DAv2) as a compact monocular depth network.

Model IDs (HuggingFace Hub)
---------------------------
Small  (~24 M params, fastest, CPU-friendly):
    ``depth-anything/Depth-Anything-V2-Small-hf``
Base   (~97 M params):
    ``depth-anything/Depth-Anything-V2-Base-hf``

Input / output
--------------
The sensing backend does its own resize + [0, 1] scaling, so this wrapper
receives a ``(1, S, S, 3)`` float32 RGB batch.  It only applies the model's
mean/std normalisation before inference.  ``S`` should be a multiple of the
ViT patch size (14).

DAv2 outputs *inverse* relative depth (larger value = closer to camera),
which is exactly the convention the monocular backend expects, so the raw
output is returned without inversion.
"""

from __future__ import annotations

import logging

import numpy as np

from . import DepthNetwork

_logger = logging.getLogger(__name__)

DEFAULT_MODEL_ID = "depth-anything/Depth-Anything-V2-Small-hf"


class DepthAnythingV2Network(DepthNetwork):
    """Depth Anything V2 relative-depth network.

    Parameters
    ----------
    model_id : HuggingFace Hub model ID or local checkpoint directory.
    device   : ``'cuda'``, ``'mps'`` or ``'cpu'``.
    fp16     : half precision on CUDA; ignored elsewhere.
    """

    def __init__(
        self,
        model_id: str = DEFAULT_MODEL_ID,
        device: str = "cpu",
        fp16: bool = True,
    ) -> None:
        self.model_id = model_id
        self._device = device
        self._fp16 = fp16 and device == "cuda"
        self._model = None
        self._mean = None
        self._std = None
        self._loaded = False

    # ── Model loading ─────────────────────────────────────────────────────────

    def load(self) -> None:
        """Load weights and processor stats.  No-op when already loaded."""
        if self._loaded:
            return
        try:
            import torch
            from transformers import AutoImageProcessor, AutoModelForDepthEstimation
        except ImportError as e:
            raise ImportError(
                "Depth Anything V2 requires 'transformers' and 'torch'. "
                "Install them with: pip install transformers torch"
            ) from e

        _logger.info("Loading Depth Anything V2 from '%s' …", self.model_id)
        dtype = torch.float16 if self._fp16 else torch.float32
        processor = AutoImageProcessor.from_pretrained(self.model_id)
        self._model = AutoModelForDepthEstimation.from_pretrained(
            self.model_id,
            torch_dtype=dtype,
        ).to(self._device).eval()
        self._mean = torch.tensor(processor.image_mean, dtype=torch.float32).view(1, 3, 1, 1)
        self._std = torch.tensor(processor.image_std, dtype=torch.float32).view(1, 3, 1, 1)
        _logger.info("DepthAnythingV2 ready: device=%s  fp16=%s", self._device, self._fp16)
        self._loaded = True

    # ── Inference ─────────────────────────────────────────────────────────────

    def predict(self, batch: np.ndarray) -> np.ndarray:
        """Return an (S', S') float32 inverse-depth map (larger = closer)."""
        self.load()

        import torch

        pixels = torch.from_numpy(np.ascontiguousarray(batch, dtype=np.float32))
        pixels = (pixels.permute(0, 3, 1, 2) - self._mean) / self._std
        pixels = pixels.to(self._device, dtype=torch.float16 if self._fp16 else torch.float32)

        with torch.inference_mode():
            outputs = self._model(pixel_values=pixels)

        depth = outputs.predicted_depth.squeeze().float().cpu().numpy().astype(np.float32)
        del pixels, outputs
        return depth

    def close(self) -> None:
        self._model = None
        self._mean = None
        self._std = None
        self._loaded = False
        if self._device == "cuda":
            import torch
            torch.cuda.empty_cache()

    @property
    def is_loaded(self) -> bool:
        return self._loaded

    def __repr__(self) -> str:
        return (
            f"DepthAnythingV2Network(model_id='{self.model_id}', "
            f"device='{self._device}', fp16={self._fp16})"
        )
