"""Warden Meta information."""

__title__ = "repo-warden"
__description__ = (
    "Session, CSRF state and permission caching layer that enforces "
    "repository access levels resolved from GitHub."
)
__version__ = "0.4.1"
__author__ = "Jesus Lara"
__author_email__ = "jesuslarag@gmail.com"
__license__ = "MIT"
__copyright__ = "Copyright (c) 2020-2024 Jesus Lara"
