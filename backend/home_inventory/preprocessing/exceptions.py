from home_inventory.common.exceptions import AppError, NextAction


class UnsupportedFormatError(AppError):
    """Input is not a decodable JPEG/PNG/WEBP raster image"""
    next_action = NextAction.RETAKE
