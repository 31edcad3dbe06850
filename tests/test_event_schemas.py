"""Tests for event request validation."""

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from koda.src.events.schemas import NON_NULLABLE_FIELDS, EventUpdate


class TestEventUpdate:
    @pytest.mark.parametrize("field", NON_NULLABLE_FIELDS)
    def test_explicit_null_is_rejected(self, field):
        with pytest.raises(ValidationError) as excinfo:
            EventUpdate.model_validate({field: None})

        assert f"{field} may not be null" in str(excinfo.value)

    def test_omitted_fields_are_not_set(self):
        changes = EventUpdate.model_validate({"start_at": "2026-11-02T14:00:00Z"})

        assert changes.model_dump(exclude_unset=True) == {
            "start_at": datetime(2026, 11, 2, 14, 0, tzinfo=timezone.utc)
        }

    @pytest.mark.parametrize("field", ["description", "location_name"])
    def test_optional_text_may_be_cleared(self, field):
        changes = EventUpdate.model_validate({field: None})

        assert changes.model_dump(exclude_unset=True) == {field: None}
