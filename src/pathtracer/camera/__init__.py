"""Camera models.

Components:
    thin_lens: Look-at camera with a thin lens for depth of field
"""

from .thin_lens import ThinLensCamera, get_camera_info, get_ray, get_ray_jittered, setup_camera

__all__ = ["ThinLensCamera", "get_camera_info", "get_ray", "get_ray_jittered", "setup_camera"]
