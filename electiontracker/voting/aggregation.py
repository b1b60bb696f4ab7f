# electiontracker/voting/aggregation.py

"""Result rollups over the vote entry store.

Every results view (national and each drill-down level) goes through
`AggregationEngine.compute_results`. Votes are summed per candidate over the
centers reachable from a `LocationFilter`; seats are counted separately by
walking the constituency overlay.
"""

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy import func, select

from electiontracker.database.models import Candidate, Constituency, VoteEntry
from electiontracker.hierarchy.levels import SEAT_LEVEL_LABELS

logger = logging.getLogger(__name__)

PARTY_COLORS = {
    "BNP": "border-green-500",
    "Awami League": "border-red-500",
    "Jamat-e-Islami": "border-sky-500",
    "Bangladesh Jamaat-e-Islami": "border-sky-500",
    "Jatiya Party": "border-yellow-500",
}
DEFAULT_PARTY_COLOR = "border-slate-500"
UNKNOWN = "Unknown"


def party_color(party):
    return PARTY_COLORS.get((party or "").strip(), DEFAULT_PARTY_COLOR)


def vote_percentage(count, total):
    """Share of `total` as a percentage rounded to one decimal; 0 when nothing was cast."""
    if total <= 0:
        return 0.0
    return round(count / total * 100, 1)


@dataclass
class VoteResult:
    candidate_id: int
    candidate_name: str
    party_name: str
    vote_count: int
    percentage: float
    color: str
    symbol: Optional[str] = None

    def to_dict(self):
        data = {
            "candidateId": self.candidate_id,
            "candidateName": self.candidate_name,
            "partyName": self.party_name,
            "voteCount": self.vote_count,
            "percentage": self.percentage,
            "color": self.color,
        }
        if self.symbol:
            data["symbol"] = self.symbol
        return data


@dataclass
class LeadingParty:
    name: str
    color: str
    count: int

    def to_dict(self):
        return {"name": self.name, "color": self.color, "count": self.count}


@dataclass
class PartySeat:
    party_name: str
    seats: int
    color: str

    def to_dict(self):
        return {"partyName": self.party_name, "seats": self.seats, "color": self.color}


@dataclass
class LocationStats:
    location_name: str
    location_type: str
    total_votes: int
    results: List[VoteResult] = field(default_factory=list)
    leading_party: Optional[LeadingParty] = None
    party_seats: Optional[List[PartySeat]] = None

    def to_dict(self):
        data = {
            "locationName": self.location_name,
            "locationType": self.location_type,
            "totalVotes": self.total_votes,
            "results": [r.to_dict() for r in self.results],
        }
        if self.leading_party is not None:
            data["leadingParty"] = self.leading_party.to_dict()
        if self.party_seats is not None:
            data["partySeats"] = [s.to_dict() for s in self.party_seats]
        return data


def rank_results(results: Iterable[VoteResult]) -> List[VoteResult]:
    # Highest count first, equal counts by candidate id
    return sorted(results, key=lambda r: (-r.vote_count, r.candidate_id))


def constituency_winners(contenders: Iterable[Tuple[int, str, int]],
                         totals: Dict[int, int]) -> Dict[int, Tuple[int, str]]:
    """Pick the winning (votes, party) per constituency.

    `contenders` are (candidate_id, party, constituency_id) rows. A candidate
    must beat the current leader strictly, so on a tie the lowest candidate id
    keeps the seat. Constituencies whose best total is 0 are left out.
    """
    best = {}
    for candidate_id, party, constituency_id in sorted(contenders, key=lambda row: row[0]):
        votes = totals.get(candidate_id, 0)
        current = best.get(constituency_id)
        if current is None or votes > current[0]:
            best[constituency_id] = (votes, party)
    return {cid: winner for cid, winner in best.items() if winner[0] > 0}


class AggregationEngine:
    def __init__(self, session):
        self.session = session

    def compute_results(self, location_filter, location_name, location_type=None) -> LocationStats:
        location_type = location_type or location_filter.label
        totals = self.tally(location_filter)
        total_votes = sum(totals.values())

        # Candidate cardinality is small: one query, joined in memory
        candidates = {c.id: c for c in self.session.query(Candidate).all()}

        results = rank_results(
            self._result_row(candidate_id, count, total_votes, candidates.get(candidate_id))
            for candidate_id, count in totals.items()
        )

        leading_party = None
        if results:
            top = results[0]
            leading_party = LeadingParty(name=top.party_name, color=top.color, count=top.vote_count)

        party_seats = None
        if location_type in SEAT_LEVEL_LABELS:
            party_seats = self.party_seats(location_filter)

        logger.debug("Aggregated %s %r: %d votes across %d candidates",
                     location_type, location_name, total_votes, len(results))
        return LocationStats(
            location_name=location_name,
            location_type=location_type,
            total_votes=total_votes,
            results=results,
            leading_party=leading_party,
            party_seats=party_seats,
        )

    def tally(self, location_filter) -> Dict[int, int]:
        """Summed votes per candidate inside the filter; candidates at 0 are dropped."""
        query = self.session.query(VoteEntry.candidate_id, func.sum(VoteEntry.vote_count))
        center_ids = location_filter.center_ids()
        if center_ids is not None:
            query = query.filter(VoteEntry.center_id.in_(center_ids))
        rows = query.group_by(VoteEntry.candidate_id).order_by(VoteEntry.candidate_id).all()
        return {candidate_id: int(total) for candidate_id, total in rows if total}

    def party_seats(self, location_filter) -> List[PartySeat]:
        constituency_ids = select(Constituency.id).where(location_filter.constituency_clause())
        contenders = (
            self.session.query(Candidate.id, Candidate.party, Candidate.constituency_id)
            .filter(Candidate.constituency_id.in_(constituency_ids))
            .order_by(Candidate.id)
            .all()
        )
        if not contenders:
            return []

        # Candidate totals are national: entries carry no constituency tag
        rows = (
            self.session.query(VoteEntry.candidate_id, func.sum(VoteEntry.vote_count))
            .filter(VoteEntry.candidate_id.in_([row[0] for row in contenders]))
            .group_by(VoteEntry.candidate_id)
            .all()
        )
        totals = {candidate_id: int(total or 0) for candidate_id, total in rows}

        winners = constituency_winners(contenders, totals)
        seats = Counter(party for _, party in winners.values())
        return sorted(
            (PartySeat(party_name=party, seats=count, color=party_color(party))
             for party, count in seats.items()),
            key=lambda s: (-s.seats, s.party_name),
        )

    @staticmethod
    def _result_row(candidate_id, count, total_votes, candidate):
        party = candidate.party if candidate else UNKNOWN
        return VoteResult(
            candidate_id=candidate_id,
            candidate_name=candidate.name if candidate else UNKNOWN,
            party_name=party,
            vote_count=count,
            percentage=vote_percentage(count, total_votes),
            color=party_color(party if candidate else ""),
            symbol=candidate.symbol if candidate else None,
        )
