"""
Tests for settings loading and saving.
"""
import json

from librarysync.config import Settings, load_settings, save_settings


def test_missing_file_gives_defaults(tmp_path):
    settings = load_settings(str(tmp_path / 'nope.json'), environ={})
    assert settings == Settings()
    assert settings.cache_ttl_days == 7
    assert settings.has_igdb == False


def test_file_values_and_unknown_keys(tmp_path):
    path = tmp_path / 'settings.json'
    path.write_text(json.dumps({'igdb_client_id': 'cid', 'igdb_client_secret': 's',
                                'enrichment_concurrency': 8, 'legacy_option': True}))

    settings = load_settings(str(path), environ={})

    assert settings.igdb_client_id == 'cid'
    assert settings.enrichment_concurrency == 8
    assert settings.has_igdb == True


def test_environment_wins_over_file(tmp_path):
    path = tmp_path / 'settings.json'
    path.write_text(json.dumps({'steamgriddb_api_key': 'from-file'}))

    settings = load_settings(str(path), environ={'STEAMGRIDDB_API_KEY': 'from-env'})

    assert settings.steamgriddb_api_key == 'from-env'
    assert settings.has_steamgriddb == True


def test_corrupt_file_gives_defaults(tmp_path):
    path = tmp_path / 'settings.json'
    path.write_text('{not json')
    assert load_settings(str(path), environ={}) == Settings()


def test_save_merges_into_existing_file(tmp_path):
    path = tmp_path / 'sub' / 'settings.json'
    path.parent.mkdir()
    path.write_text(json.dumps({'ui_theme': 'dark'}))

    save_settings(Settings(igdb_access_token='tok', igdb_token_expires_at=123.0), str(path))

    data = json.loads(path.read_text())
    assert data['ui_theme'] == 'dark'
    assert data['igdb_access_token'] == 'tok'
    assert load_settings(str(path), environ={}).igdb_token_expires_at == 123.0


def test_save_selected_keys_leaves_environment_secrets_out(tmp_path):
    path = tmp_path / 'settings.json'
    path.write_text(json.dumps({'igdb_client_id': 'cid'}))
    settings = load_settings(str(path), environ={'IGDB_CLIENT_SECRET': 'env-secret',
                                                 'STEAMGRIDDB_API_KEY': 'env-key'})
    settings.igdb_access_token = 'tok'

    save_settings(settings, str(path), keys=('igdb_access_token', 'igdb_token_expires_at'))

    data = json.loads(path.read_text())
    assert data == {'igdb_client_id': 'cid', 'igdb_access_token': 'tok', 'igdb_token_expires_at': None}
