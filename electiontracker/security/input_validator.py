# electiontracker/security/input_validator.py

import html
import math
import re
from collections.abc import Mapping

import bleach

from electiontracker.errors import SubmissionValidationError

# Free-text names are stored as plain text; markup is stripped, not escaped.
# Vote counts are parsed leniently: a bad or out-of-range count becomes 0 instead of failing
# the whole submission.

CANDIDATE_KEY_PREFIX = 'candidate_'
# Largest value the vote_count INTEGER column holds on PostgreSQL
MAX_VOTE_COUNT = 2 ** 31 - 1


class InputValidator:
    def __init__(self, max_name_length=150):
        self.max_name_length = max_name_length
        self.patterns = {
            'leading_int': re.compile(r'^\s*([+-]?\d+)'),
            'whitespace': re.compile(r'\s+'),
            'username': re.compile(r'^[A-Za-z0-9_.@-]{3,80}$'),
        }

    def sanitize_name(self, value, field='Name', max_length=None):
        if not isinstance(value, str):
            raise SubmissionValidationError(f"{field} is required")
        cleaned = bleach.clean(value, tags=[], attributes={}, strip=True)
        cleaned = html.unescape(cleaned)
        cleaned = self.patterns['whitespace'].sub(' ', cleaned).strip()
        if not cleaned:
            raise SubmissionValidationError(f"{field} is required")
        return cleaned[:max_length or self.max_name_length]

    def optional_text(self, value, field='Value', max_length=None):
        if value is None or (isinstance(value, str) and not value.strip()):
            return None
        return self.sanitize_name(value, field=field, max_length=max_length)

    def validate_username(self, username):
        if not isinstance(username, str) or not self.patterns['username'].match(username.strip()):
            raise SubmissionValidationError(
                "Username must be 3-80 characters of letters, digits or . _ @ -"
            )
        return username.strip()

    def coerce_vote_count(self, value):
        """Non-negative int from whatever the form sent; anything unusable is 0."""
        count = self._leading_count(value)
        return count if count <= MAX_VOTE_COUNT else 0

    def _leading_count(self, value):
        if isinstance(value, bool):
            return 0
        if isinstance(value, int):
            return max(value, 0)
        if isinstance(value, float):
            return max(int(value), 0) if math.isfinite(value) else 0
        if isinstance(value, str):
            match = self.patterns['leading_int'].match(value)
            return max(int(match.group(1)), 0) if match else 0
        return 0

    def parse_candidate_key(self, key):
        """Candidate id from `12`, `"12"` or `"candidate_12"`; None for unrelated form fields."""
        if isinstance(key, bool):
            raise SubmissionValidationError(f"Invalid candidate key: {key!r}")
        if isinstance(key, int):
            return key
        if not isinstance(key, str):
            raise SubmissionValidationError(f"Invalid candidate key: {key!r}")
        key = key.strip()
        if key.startswith(CANDIDATE_KEY_PREFIX):
            raw = key[len(CANDIDATE_KEY_PREFIX):]
            if not raw.isdigit():
                raise SubmissionValidationError(f"Invalid candidate key: {key!r}")
            return int(raw)
        if key.isdigit():
            return int(key)
        return None

    def parse_vote_counts(self, raw):
        if not isinstance(raw, Mapping):
            raise SubmissionValidationError("Vote data must map candidate ids to counts")
        counts = {}
        for key, value in raw.items():
            candidate_id = self.parse_candidate_key(key)
            if candidate_id is None:
                continue
            counts[candidate_id] = self.coerce_vote_count(value)
        if not counts:
            raise SubmissionValidationError("No vote data provided.")
        return counts
