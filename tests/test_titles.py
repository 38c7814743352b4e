"""
Tests for title normalization, similarity and the HLTB match gate.
"""
from unittest.mock import AsyncMock, patch

import pytest

from librarysync.metadata.hltb import (
    HltbClient, MIN_SIMILARITY, build_search_payload, find_best_match, seconds_to_hours,
)
from librarysync.utils.titles import clean_title, levenshtein_distance, normalize_title, title_similarity


def test_clean_title_strips_marks():
    assert clean_title("The Witcher® 3:  Wild Hunt™") == "The Witcher 3: Wild Hunt"


def test_normalize_title():
    assert normalize_title("The Witcher® 3: Wild Hunt") == "thewitcher3wildhunt"


def test_levenshtein_distance():
    assert levenshtein_distance("kitten", "sitting") == 3
    assert levenshtein_distance("", "abc") == 3
    assert levenshtein_distance("same", "same") == 0


def test_title_similarity():
    assert title_similarity("Hades", "HADES!") == 1.0
    assert title_similarity("", "") == 1.0
    assert title_similarity("abcd", "abcx") == 0.75
    assert title_similarity("Portal", "Forza Horizon 5") < MIN_SIMILARITY


def test_seconds_to_hours():
    assert seconds_to_hours(36000) == 10
    assert seconds_to_hours(5400) == 2
    assert seconds_to_hours(9000) == 3
    assert seconds_to_hours(1800) == 1
    assert seconds_to_hours(0) is None
    assert seconds_to_hours(None) is None


def test_search_payload_splits_terms():
    assert build_search_payload("Hollow Knight")['searchTerms'] == ['Hollow', 'Knight']


def test_best_match_prefers_most_similar():
    results = [
        {'game_name': 'Hollow Knight: Silksong'},
        {'game_name': 'Hollow Knight'},
    ]
    assert find_best_match("Hollow Knight", results)['game_name'] == 'Hollow Knight'


def test_lone_low_similarity_result_is_rejected():
    assert find_best_match("Portal", [{'game_name': 'Forza Horizon 5'}]) is None


@pytest.mark.asyncio
async def test_hltb_search_maps_hours():
    client = HltbClient()
    response = {'data': [{'game_id': 10270, 'game_name': 'The Witcher 3: Wild Hunt',
                          'comp_main': 185400, 'comp_plus': 370800, 'comp_100': 622800}]}
    with patch.object(client, '_request_json', AsyncMock(return_value=response)):
        result = await client.search("The Witcher® 3: Wild Hunt")

    assert result['game_id'] == 10270
    assert result['main'] == 52
    assert result['main_extra'] == 103
    assert result['completionist'] == 173


@pytest.mark.asyncio
async def test_hltb_search_without_good_match_returns_none():
    client = HltbClient()
    response = {'data': [{'game_id': 1, 'game_name': 'Completely Different Game'}]}
    with patch.object(client, '_request_json', AsyncMock(return_value=response)):
        assert await client.search("Hades") is None


@pytest.mark.asyncio
async def test_hltb_get_by_id():
    client = HltbClient()
    response = {'data': [{'game_id': 7, 'game_name': 'Hades', 'comp_main': 79200}]}
    with patch.object(client, '_request_json', AsyncMock(return_value=response)) as request:
        result = await client.get_by_id(7)

    assert result['main'] == 22
    assert request.await_args.args[1].endswith('/api/game/7')
