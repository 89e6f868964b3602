"""Pinhole camera and primary-ray generation."""

from .pinhole import PinholeCamera, generate_primary_rays, get_camera_info, setup_camera

__all__ = ["PinholeCamera", "generate_primary_rays", "get_camera_info", "setup_camera"]
