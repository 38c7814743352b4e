"""Library Sync file path constants and utilities."""

import os


# Data directory (overridable for tests and portable installs)
LIBRARYSYNC_DATA_DIR = os.environ.get(
    "LIBRARYSYNC_DATA_DIR",
    os.path.expanduser("~/.local/share/librarysync"),
)

DATABASE_PATH = os.path.join(LIBRARYSYNC_DATA_DIR, "library.db")
SETTINGS_PATH = os.path.join(LIBRARYSYNC_DATA_DIR, "settings.json")
ARTWORK_DIR = os.path.join(LIBRARYSYNC_DATA_DIR, "artwork")
BIN_DIR = os.path.join(LIBRARYSYNC_DATA_DIR, "bin")

# gogdl keeps its tokens wherever we tell it to
GOG_AUTH_CONFIG_PATH = os.path.join(LIBRARYSYNC_DATA_DIR, "gog_auth.json")

DEFAULT_INSTALL_PATH = os.path.expanduser("~/Games")


def get_artwork_dir(game_id: str, root: str = ARTWORK_DIR) -> str:
    """Get the artwork directory for a game.

    Args:
        game_id: Library game id (e.g. 'epic-Fortnite')
        root: Artwork root directory

    Returns:
        Full path to the game's artwork directory
    """
    return os.path.join(root, game_id)

