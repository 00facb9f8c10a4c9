"""Lottie to GIF tool — renders Lottie animations to animated image loops."""

from lottie2gif.tools.lottie_gif.tool import LottieGifTool

__all__ = ["LottieGifTool"]
