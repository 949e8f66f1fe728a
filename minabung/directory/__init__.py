"""User directory package."""

from minabung.directory.user_directory import PROFILE_PICTURE_UPDATED, UserDirectory

__all__ = ["PROFILE_PICTURE_UPDATED", "UserDirectory"]
