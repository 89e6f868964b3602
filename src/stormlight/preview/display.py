"""Matplotlib preview of rendered images.

The preview shows exactly the pixels ``save_image`` would write: the
renderer's linear image goes through the same tone curve and sRGB encoding
as file output.

Example:
    >>> from src.stormlight.preview.display import show_preview
    >>> renderer.render(4)
    >>> show_preview(renderer, tone_map="reinhard")
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from src.stormlight.core.tonemap import ToneMapMethod, encode_srgb

if TYPE_CHECKING:
    from src.stormlight.core.progressive import ProgressiveRenderer


def show_preview(
    renderer: ProgressiveRenderer,
    *,
    tone_map: ToneMapMethod | None = None,
    exposure: float | None = None,
    title: str | None = None,
    figsize: tuple[float, float] = (8, 8),
    block: bool = True,
) -> None:
    """Show the renderer's current image in a Matplotlib window.

    Args:
        renderer: Renderer whose accumulated image is shown.
        tone_map: Tone curve; defaults to the renderer's configured curve.
        exposure: Exposure scale; defaults to the configured value.
        title: Window title. The default names the size, the accumulated
            samples per pixel and any tone curve.
        figsize: Figure size in inches.
        block: Whether ``plt.show`` blocks until the window closes.
    """
    import matplotlib.pyplot as plt

    config = renderer.config
    tone_map = config.tone_map if tone_map is None else tone_map
    exposure = config.exposure if exposure is None else exposure
    pixels = encode_srgb(renderer.get_linear_image(), tone_map, exposure)

    fig, ax = plt.subplots(1, 1, figsize=figsize)
    ax.imshow(pixels)
    ax.axis("off")

    if title is None:
        title = f"{renderer.width}x{renderer.height} - {renderer.sample_count} SPP"
        if tone_map != "none":
            title += f" ({tone_map})"
    ax.set_title(title)

    plt.tight_layout()
    plt.show(block=block)
