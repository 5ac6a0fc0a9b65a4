from datetime import datetime

import pytest

from conftest import new_submission
from modules.forms.repositories.submission_store import (
    format_submission_number, parse_submission_number, scope_abbreviation
)
from modules.forms.services.submission_service import CreationContext


@pytest.mark.parametrize("scope, expected", [
    ("Nordic Star", "NORDI"),
    ("MV Ace", "MVACE"),
    ("sea-7", "SEA7"),
    (None, "FLEET"),
    ("  ", "FLEET"),
])
def test_scope_abbreviation(scope, expected):
    assert scope_abbreviation(scope) == expected


def test_format_pads_the_sequence():
    assert format_submission_number("PDC", "Nordic Star", 2026, 7) == "PDC-NORDI-2026-00007"


def test_parse_splits_back_into_parts():
    assert parse_submission_number("PDC-NORDI-2026-00007") == ("PDC", "NORDI", 2026, 7)


@pytest.mark.parametrize("number", ["PDC-2026-00007", "PDC-NORDI-20X6-00007", ""])
def test_parse_rejects_malformed_numbers(number):
    with pytest.raises(ValueError):
        parse_submission_number(number)


def test_numbers_are_sequential_per_template_and_year(service, template, users):
    year = datetime.utcnow().year
    first = new_submission(service, template, users["crew"])
    second = new_submission(service, template, users["crew"], scope_name=None)
    assert first.submission_number == f"PDC-NORDI-{year}-00001"
    assert second.submission_number == f"PDC-FLEET-{year}-00002"


def test_each_year_restarts_the_sequence(service, template, users):
    new_submission(service, template, users["crew"])
    context = CreationContext(actor=users["crew"], scope_name="Nordic Star", year=2031)
    later = service.create(template.template_id, context, {})
    assert parse_submission_number(later.submission_number)[2:] == (2031, 1)
