"""
SQLite schema for the game library.

SCHEMA is applied with CREATE ... IF NOT EXISTS on every start. MIGRATIONS
are additive ALTER TABLE statements for databases created by older versions;
on a current database they fail with "duplicate column name", which is
expected and ignored.
"""

SCHEMA = """
CREATE TABLE IF NOT EXISTS games (
    id TEXT PRIMARY KEY,
    store_id TEXT NOT NULL,
    store TEXT NOT NULL CHECK (store IN ('epic', 'gog', 'amazon', 'steam')),
    title TEXT NOT NULL,

    installed INTEGER NOT NULL DEFAULT 0,
    install_path TEXT,
    install_size TEXT,
    executable_path TEXT,
    custom_executable TEXT,
    wine_prefix TEXT,
    wine_version TEXT,
    runner TEXT,

    description TEXT,
    summary TEXT,
    metacritic_score INTEGER,
    igdb_rating INTEGER,
    developer TEXT,
    publisher TEXT,
    genres TEXT NOT NULL DEFAULT '[]',
    release_date TEXT,
    hltb_main INTEGER,
    hltb_main_extra INTEGER,
    hltb_complete INTEGER,
    hltb_speedrun INTEGER,
    proton_tier TEXT,
    proton_confidence TEXT,
    proton_trending_tier TEXT,
    steam_app_id INTEGER,
    achievements_total INTEGER,
    achievements_unlocked INTEGER,
    hero_path TEXT,
    grid_path TEXT,
    logo_path TEXT,
    icon_path TEXT,
    cover_path TEXT,
    cover_url TEXT,
    background_url TEXT,
    screenshot_paths TEXT NOT NULL DEFAULT '[]',

    is_favorite INTEGER NOT NULL DEFAULT 0,
    play_time_minutes INTEGER NOT NULL DEFAULT 0,
    last_played TEXT,

    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    enriched_at TEXT,

    UNIQUE (store, store_id)
);

CREATE TABLE IF NOT EXISTS enrichment_cache (
    game_id TEXT NOT NULL,
    provider TEXT NOT NULL,
    data TEXT NOT NULL,
    fetched_at TEXT NOT NULL,
    PRIMARY KEY (game_id, provider)
);

CREATE TABLE IF NOT EXISTS settings (
    key TEXT PRIMARY KEY,
    value TEXT
);

CREATE INDEX IF NOT EXISTS idx_games_store ON games(store);
CREATE INDEX IF NOT EXISTS idx_games_installed ON games(installed);
CREATE INDEX IF NOT EXISTS idx_games_last_played ON games(last_played);
CREATE INDEX IF NOT EXISTS idx_cache_game_id ON enrichment_cache(game_id);
"""

# Columns added after the first release. Order matters only for readability.
MIGRATIONS = [
    "ALTER TABLE games ADD COLUMN is_favorite INTEGER NOT NULL DEFAULT 0",
    "ALTER TABLE games ADD COLUMN cover_path TEXT",
    "ALTER TABLE games ADD COLUMN screenshot_paths TEXT NOT NULL DEFAULT '[]'",
    "ALTER TABLE games ADD COLUMN proton_trending_tier TEXT",
    "ALTER TABLE games ADD COLUMN achievements_total INTEGER",
    "ALTER TABLE games ADD COLUMN achievements_unlocked INTEGER",
]

# Columns written by the enrichment pipeline. A sync never touches these.
ENRICHMENT_COLUMNS = (
    'description', 'summary', 'metacritic_score', 'igdb_rating',
    'developer', 'publisher', 'genres', 'release_date',
    'hltb_main', 'hltb_main_extra', 'hltb_complete', 'hltb_speedrun',
    'proton_tier', 'proton_confidence', 'proton_trending_tier',
    'steam_app_id', 'achievements_total', 'achievements_unlocked',
    'hero_path', 'grid_path', 'logo_path', 'icon_path', 'cover_path',
    'cover_url', 'background_url', 'screenshot_paths',
)

# Columns stored as JSON arrays
JSON_LIST_COLUMNS = ('genres', 'screenshot_paths')
