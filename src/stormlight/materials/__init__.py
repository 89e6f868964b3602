"""Surface materials."""

from .phong import PhongMaterial, load_texture

__all__ = ["PhongMaterial", "load_texture"]
