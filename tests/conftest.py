"""Shared fixtures for libretto timing tests."""

import copy
import json

import pytest

from libretto_timing.models import BaseLibretto, TimingOverlay


# Global positions:
#   0 sinfonia-001 | 1 no-1-001  2 no-1-002  3 no-1-003 | 4 rec-1-001  5 rec-1-002 | 6 no-2-001  7 no-2-002
BASE_DATA = {
    "opera": {
        "title": "Le nozze di Figaro",
        "composer": "Wolfgang Amadeus Mozart",
        "language": "it",
        "translation_language": "en",
    },
    "numbers": [
        {
            "number_id": "sinfonia", "label": "Sinfonia", "type": "instrumental",
            "act": "1", "scene": None,
            "segments": [{"segment_id": "sinfonia-001", "direction": "Overture"}],
        },
        {
            "number_id": "no-1", "label": "No. 1 Duettino", "type": "duet",
            "act": "1", "scene": "1",
            "segments": [
                {"segment_id": "no-1-001", "character": "FIGARO",
                 "text": "Cinque... dieci... venti...", "translation": "Five... ten... twenty..."},
                {"segment_id": "no-1-002", "character": "SUSANNA",
                 "text": "Ora sì ch'io son contenta", "translation": "How happy I am now"},
                {"segment_id": "no-1-003", "character": "FIGARO, SUSANNA",
                 "text": "Ah, il tenero core", "group": "a2"},
            ],
        },
        {
            "number_id": "rec-1", "label": "Recitativo", "type": "recitative",
            "act": "1", "scene": "1",
            "segments": [
                {"segment_id": "rec-1-001", "character": "FIGARO",
                 "text": "Cosa stai misurando, caro il mio Figaretto?"},
                {"segment_id": "rec-1-002", "character": "SUSANNA",
                 "text": "Bravo, signor padrone! Ora incomincio", "direction": "ironically"},
            ],
        },
        {
            "number_id": "no-2", "label": "No. 2 Duettino", "type": "duet",
            "act": "1", "scene": "1",
            "segments": [
                {"segment_id": "no-2-001", "character": "FIGARO",
                 "text": "Se a caso madama la notte ti chiama"},
                {"segment_id": "no-2-002", "character": "SUSANNA",
                 "text": "Così se il mattino il caro contino"},
            ],
        },
    ],
}

OVERLAY_DATA = {
    "base_libretto_ref": "mozart/le-nozze-di-figaro/base.libretto.json",
    "recording": {
        "conductor": "Carlo Maria Giulini",
        "orchestra": "Philharmonia Orchestra",
        "album_title": "Le nozze di Figaro (Giulini)",
        "year": 1959,
    },
    "track_timings": [
        {"track_title": "Sinfonia", "disc_number": 1, "track_number": 1,
         "duration_seconds": 270.0, "number_ids": ["sinfonia"]},
        {"track_title": 'No. 1 Duettino "Cinque... dieci..."; Recitativo "Cosa stai misurando"',
         "disc_number": 1, "track_number": 2,
         "duration_seconds": 180.0, "number_ids": ["no-1", "rec-1"]},
        {"track_title": 'Recitativo "Bravo, signor padrone"; No. 2 Duettino "Se a caso madama"',
         "disc_number": 1, "track_number": 3,
         "duration_seconds": 150.0, "number_ids": ["no-2"]},
    ],
}


def write_json(path, data):
    """Write a JSON fixture file and return its path as a string."""
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, ensure_ascii=False)
    return str(path)


def make_base(numbers, opera=None):
    """Build a BaseLibretto from a list of number dicts."""
    return BaseLibretto.from_dict({
        "opera": opera or {"title": "Test Opera", "composer": "Test", "language": "it"},
        "numbers": numbers,
    })


@pytest.fixture
def base_data():
    return copy.deepcopy(BASE_DATA)


@pytest.fixture
def overlay_data():
    return copy.deepcopy(OVERLAY_DATA)


@pytest.fixture
def base(base_data):
    return BaseLibretto.from_dict(base_data)


@pytest.fixture
def overlay(overlay_data):
    return TimingOverlay.from_dict(overlay_data)


@pytest.fixture
def pipeline_files(tmp_path, base_data, overlay_data):
    """Base libretto and scaffold overlay written to disk."""
    base_path = write_json(tmp_path / "base.libretto.json", base_data)
    timing_path = write_json(tmp_path / "timing.overlay.json", overlay_data)
    return base_path, timing_path
