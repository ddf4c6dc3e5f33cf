"""Output processing for rendered images.

Components:
    tonemap: NaN removal, clamping, tone mapping and gamma
    export: PNG and PPM writers
"""

from .export import compute_rmse, format_ppm, image_to_uint8, save_png, save_png_from_array, save_ppm
from .tonemap import apply_gamma, process_image_for_display, sanitize, tone_map_exposure, tone_map_reinhard

__all__ = [
    "compute_rmse",
    "format_ppm",
    "image_to_uint8",
    "save_png",
    "save_png_from_array",
    "save_ppm",
    "apply_gamma",
    "process_image_for_display",
    "sanitize",
    "tone_map_exposure",
    "tone_map_reinhard",
]
