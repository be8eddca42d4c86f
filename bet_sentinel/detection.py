"""
Suspicious Bettor Detection for Bet Sentinel.

This module flags actors whose recent betting looks automated or abusive.
It runs as a batch over a trailing window of bet events:

1. Window aggregation:
   - Groups events by actor inside [now - window, now]
   - Counts, sums, first/last bet, distinct games, flagged bets

2. Pattern filtering:
   - High absolute volume in the window
   - Sustained high frequency (bets per hour)
   - Focused, repetitive play on one or two games

3. Suspicion scoring:
   - 0-100 additive score per actor
   - Tiered frequency, volume and focus rules
   - Flagged-bet ratio and round-amount pattern

4. Ranking:
   - Highest score first, ties broken by bet count
   - Truncated to the top N actors

DISCLAIMER: Scores are heuristics. Flagged actors require human review and
a high score does not constitute proof of wrongdoing.
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Iterable, Optional, Sequence

from .config import Settings, settings
from .models import BetEvent, parse_events
from .utils import chunk_list, ensure_utc

logger = logging.getLogger(__name__)


# ============================================================================
# Configuration Constants
# ============================================================================

WINDOW_DAYS = 7
MAX_CANDIDATES = 100
DEFAULT_TOP_N = 20
ROUND_AMOUNT_TOLERANCE = 1e-6


@dataclass
class DetectionConfig:
    """Thresholds and weights for the detection pipeline."""

    # Window and result sizes
    WINDOW_DAYS: int = WINDOW_DAYS
    MAX_CANDIDATES: int = MAX_CANDIDATES
    TOP_N: int = DEFAULT_TOP_N

    # Filter rules
    MIN_TOTAL_BETS: int = 50            # Rule 1: high volume
    MIN_BETS_PER_HOUR: float = 5.0      # Rule 2: sustained frequency
    FOCUSED_MIN_BETS: int = 20          # Rule 3: focused play...
    FOCUSED_MAX_GAMES: int = 2          # ...on at most this many games

    # Frequency rule
    FREQUENCY_HIGH: float = 10.0
    FREQUENCY_LOW: float = 5.0
    POINTS_FREQUENCY_HIGH: int = 30
    POINTS_FREQUENCY_LOW: int = 15

    # Volume rule
    VOLUME_HIGH: int = 100
    VOLUME_LOW: int = 50
    POINTS_VOLUME_HIGH: int = 25
    POINTS_VOLUME_LOW: int = 15

    # Focus rule
    FOCUS_SINGLE_GAME: int = 1
    FOCUS_FEW_GAMES: int = 2
    POINTS_FOCUS_SINGLE: int = 20
    POINTS_FOCUS_FEW: int = 10

    # Flag ratio rule
    FLAGGED_PERCENT_THRESHOLD: float = 20.0
    POINTS_FLAGGED: int = 15

    # Round amount rule
    ROUND_AMOUNT_UNIT: float = 10.0
    ROUND_AMOUNT_TOLERANCE: float = ROUND_AMOUNT_TOLERANCE
    POINTS_ROUND_AMOUNT: int = 10

    MAX_SCORE: int = 100

    @property
    def window(self) -> timedelta:
        """Length of the trailing analysis window."""
        return timedelta(days=self.WINDOW_DAYS)

    @classmethod
    def from_settings(cls, app_settings: Optional[Settings] = None) -> "DetectionConfig":
        """Build a config using the window and size values from settings."""
        s = app_settings or settings
        return cls(
            WINDOW_DAYS=s.window_days,
            MAX_CANDIDATES=s.max_candidates,
            TOP_N=s.top_n,
            ROUND_AMOUNT_TOLERANCE=s.round_amount_tolerance,
        )


# ============================================================================
# Data Classes
# ============================================================================

@dataclass
class ActorWindowSummary:
    """Running betting statistics for one actor inside the window."""
    actor_id: str
    total_events: int = 0
    total_amount: float = 0.0
    first_event_at: Optional[datetime] = None
    last_event_at: Optional[datetime] = None
    distinct_activities: set = field(default_factory=set)
    flagged_count: int = 0

    def add(self, event: BetEvent) -> None:
        """Fold one event into the running totals."""
        self.total_events += 1
        self.total_amount += event.amount
        if self.first_event_at is None or event.timestamp < self.first_event_at:
            self.first_event_at = event.timestamp
        if self.last_event_at is None or event.timestamp > self.last_event_at:
            self.last_event_at = event.timestamp
        self.distinct_activities.add(event.game_name)
        if event.flagged:
            self.flagged_count += 1

    def merge(self, other: "ActorWindowSummary") -> None:
        """Combine another partial summary for the same actor into this one."""
        if other.actor_id != self.actor_id:
            raise ValueError(
                f"cannot merge summaries of {other.actor_id!r} into {self.actor_id!r}"
            )
        self.total_events += other.total_events
        self.total_amount += other.total_amount
        if other.first_event_at is not None and (
            self.first_event_at is None or other.first_event_at < self.first_event_at
        ):
            self.first_event_at = other.first_event_at
        if other.last_event_at is not None and (
            self.last_event_at is None or other.last_event_at > self.last_event_at
        ):
            self.last_event_at = other.last_event_at
        self.distinct_activities |= other.distinct_activities
        self.flagged_count += other.flagged_count

    def copy(self) -> "ActorWindowSummary":
        return ActorWindowSummary(
            actor_id=self.actor_id,
            total_events=self.total_events,
            total_amount=self.total_amount,
            first_event_at=self.first_event_at,
            last_event_at=self.last_event_at,
            distinct_activities=set(self.distinct_activities),
            flagged_count=self.flagged_count,
        )

    @property
    def average_amount(self) -> float:
        return self.total_amount / self.total_events

    @property
    def duration_hours(self) -> float:
        """Hours between the first and last bet."""
        return (self.last_event_at - self.first_event_at).total_seconds() / 3600

    @property
    def activity_diversity(self) -> int:
        return len(self.distinct_activities)

    @property
    def flagged_ratio_percent(self) -> float:
        return 100 * self.flagged_count / self.total_events

    @property
    def events_per_hour(self) -> float:
        """
        Betting frequency over the actor's active span.

        All bets at the same instant count as maximally frequent, so a
        zero-length span yields the raw bet count.
        """
        duration = self.duration_hours
        if duration > 0:
            return self.total_events / duration
        return float(self.total_events)

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "actorId": self.actor_id,
            "totalBets": self.total_events,
            "totalAmount": round(self.total_amount, 2),
            "avgBetAmount": round(self.average_amount, 2),
            "firstBet": self.first_event_at.isoformat() if self.first_event_at else None,
            "lastBet": self.last_event_at.isoformat() if self.last_event_at else None,
            "distinctActivities": self.activity_diversity,
            "flaggedBets": self.flagged_count,
            "flaggedPercentage": round(self.flagged_ratio_percent, 1),
            "betsPerHour": round(self.events_per_hour, 2),
        }


@dataclass
class ScoredActor:
    """An actor summary with its suspicion score."""
    summary: ActorWindowSummary
    suspicion_score: int = 0
    score_breakdown: dict = field(default_factory=dict)

    @property
    def actor_id(self) -> str:
        return self.summary.actor_id

    @property
    def total_events(self) -> int:
        return self.summary.total_events

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        result = {
            "actorId": self.actor_id,
            "suspicionScore": self.suspicion_score,
        }
        result.update(self.summary.to_dict())
        result["scoreBreakdown"] = dict(self.score_breakdown)
        return result


@dataclass
class AnalysisReport:
    """Result of one pipeline run."""
    suspicious_actors: list
    total_analyzed: int
    actors_in_window: int
    events_in_window: int
    window_start: datetime
    window_end: datetime
    generated_at: datetime = field(default_factory=lambda: datetime.now().astimezone())

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "suspiciousUsers": [actor.to_dict() for actor in self.suspicious_actors],
            "totalAnalyzed": self.total_analyzed,
            "actorsInWindow": self.actors_in_window,
            "eventsInWindow": self.events_in_window,
            "windowStart": self.window_start.isoformat(),
            "windowEnd": self.window_end.isoformat(),
            "generatedAt": self.generated_at.isoformat(),
        }


# ============================================================================
# Window Aggregation
# ============================================================================

class WindowAggregator:
    """Groups bet events by actor within the trailing window."""

    def __init__(self, config: Optional[DetectionConfig] = None):
        self.config = config or DetectionConfig()

    def window_bounds(
        self,
        now: datetime,
        window_start: Optional[datetime] = None
    ) -> tuple[datetime, datetime]:
        """
        Resolve the effective [start, end] of the window.

        A caller-supplied start can only narrow the configured window.

        Args:
            now: End of the window.
            window_start: Optional later start.

        Returns:
            Tuple of (start, end) as UTC datetimes.
        """
        end = ensure_utc(now)
        start = end - self.config.window
        if window_start is not None:
            start = max(start, ensure_utc(window_start))
        return start, end

    def aggregate(
        self,
        events: Iterable[BetEvent],
        now: datetime,
        window_start: Optional[datetime] = None
    ) -> dict[str, ActorWindowSummary]:
        """
        Build per-actor summaries for events inside the window.

        Args:
            events: Bet events; out-of-window events are discarded.
            now: End of the window, supplied by the caller.
            window_start: Optional later window start.

        Returns:
            Mapping of actor_id to ActorWindowSummary.
        """
        start, end = self.window_bounds(now, window_start)
        summaries: dict[str, ActorWindowSummary] = {}
        discarded = 0

        for event in events:
            if not (start <= event.timestamp <= end):
                discarded += 1
                continue
            summary = summaries.get(event.actor_id)
            if summary is None:
                summary = summaries[event.actor_id] = ActorWindowSummary(event.actor_id)
            summary.add(event)

        if discarded:
            logger.debug(f"Discarded {discarded} events outside {start} - {end}")

        return summaries

    def aggregate_sharded(
        self,
        events: Sequence[BetEvent],
        now: datetime,
        shard_size: int = 10000,
        window_start: Optional[datetime] = None
    ) -> dict[str, ActorWindowSummary]:
        """
        Aggregate events shard by shard and merge the partial results.

        Args:
            events: Bet events.
            now: End of the window.
            shard_size: Maximum events per shard.
            window_start: Optional later window start.

        Returns:
            Mapping of actor_id to ActorWindowSummary, identical to aggregate().
        """
        partials = [
            self.aggregate(shard, now, window_start)
            for shard in chunk_list(list(events), shard_size)
        ]
        return merge_summaries(*partials)


def merge_summaries(*partials: dict[str, ActorWindowSummary]) -> dict[str, ActorWindowSummary]:
    """
    Merge per-shard summary mappings into one.

    The inputs are left untouched. The merge is associative and commutative,
    so shards may be combined in any order.
    """
    merged: dict[str, ActorWindowSummary] = {}
    for partial in partials:
        for actor_id, summary in partial.items():
            if actor_id in merged:
                merged[actor_id].merge(summary)
            else:
                merged[actor_id] = summary.copy()
    return merged


# ============================================================================
# Pattern Filtering
# ============================================================================

class PatternFilter:
    """Selects actor summaries that match at least one suspicious pattern."""

    def __init__(self, config: Optional[DetectionConfig] = None):
        self.config = config or DetectionConfig()

    def matched_rules(self, summary: ActorWindowSummary) -> list[str]:
        """
        List the filter rules an actor matches.

        Args:
            summary: Actor summary.

        Returns:
            Rule names among "high_volume", "high_frequency", "focused_play".
        """
        rules = []
        if summary.total_events >= self.config.MIN_TOTAL_BETS:
            rules.append("high_volume")
        if summary.events_per_hour >= self.config.MIN_BETS_PER_HOUR:
            rules.append("high_frequency")
        if (summary.total_events >= self.config.FOCUSED_MIN_BETS
                and summary.activity_diversity <= self.config.FOCUSED_MAX_GAMES):
            rules.append("focused_play")
        return rules

    def matches(self, summary: ActorWindowSummary) -> bool:
        return bool(self.matched_rules(summary))

    def select(self, summaries: dict[str, ActorWindowSummary]) -> list[ActorWindowSummary]:
        """
        Keep matching actors, capped to the configured candidate count.

        Matches are ordered by bets per hour, then bet count (both descending),
        then actor id before the cap so the kept set is reproducible.

        Args:
            summaries: Mapping of actor_id to summary.

        Returns:
            Matching summaries, each actor at most once.
        """
        candidates = [s for s in summaries.values() if self.matches(s)]
        candidates.sort(key=lambda s: (-s.events_per_hour, -s.total_events, s.actor_id))

        if len(candidates) > self.config.MAX_CANDIDATES:
            logger.info(
                f"{len(candidates)} actors matched, keeping the first "
                f"{self.config.MAX_CANDIDATES}"
            )
            candidates = candidates[:self.config.MAX_CANDIDATES]

        return candidates


# ============================================================================
# Suspicion Scoring
# ============================================================================

class ScoringEngine:
    """Additive rule-based suspicion scoring for actor summaries."""

    def __init__(self, config: Optional[DetectionConfig] = None):
        self.config = config or DetectionConfig()

    def is_round_amount(self, amount: float) -> bool:
        """Check whether an amount is a multiple of the round unit, within tolerance."""
        unit = self.config.ROUND_AMOUNT_UNIT
        tolerance = self.config.ROUND_AMOUNT_TOLERANCE
        remainder = math.fmod(abs(amount), unit)
        return remainder <= tolerance or unit - remainder <= tolerance

    def score_breakdown(self, summary: ActorWindowSummary) -> dict[str, int]:
        """
        Points contributed by each rule that fires.

        Tiers of the same rule are exclusive; the higher tier is checked first.

        Args:
            summary: Actor summary.

        Returns:
            Mapping of rule name to points.
        """
        cfg = self.config
        breakdown = {}

        # 1. Frequency
        bets_per_hour = summary.events_per_hour
        if bets_per_hour > cfg.FREQUENCY_HIGH:
            breakdown["frequency"] = cfg.POINTS_FREQUENCY_HIGH
        elif bets_per_hour > cfg.FREQUENCY_LOW:
            breakdown["frequency"] = cfg.POINTS_FREQUENCY_LOW

        # 2. Volume
        if summary.total_events > cfg.VOLUME_HIGH:
            breakdown["volume"] = cfg.POINTS_VOLUME_HIGH
        elif summary.total_events > cfg.VOLUME_LOW:
            breakdown["volume"] = cfg.POINTS_VOLUME_LOW

        # 3. Focus
        if summary.activity_diversity <= cfg.FOCUS_SINGLE_GAME:
            breakdown["focus"] = cfg.POINTS_FOCUS_SINGLE
        elif summary.activity_diversity <= cfg.FOCUS_FEW_GAMES:
            breakdown["focus"] = cfg.POINTS_FOCUS_FEW

        # 4. Flagged ratio
        if summary.flagged_ratio_percent > cfg.FLAGGED_PERCENT_THRESHOLD:
            breakdown["flagged_ratio"] = cfg.POINTS_FLAGGED

        # 5. Round amounts (potential bot behavior)
        if self.is_round_amount(summary.average_amount):
            breakdown["round_amount"] = cfg.POINTS_ROUND_AMOUNT

        return breakdown

    def score(self, summary: ActorWindowSummary) -> int:
        """
        Calculate the 0-100 suspicion score for an actor.

        Args:
            summary: Actor summary.

        Returns:
            Integer score.
        """
        total = sum(self.score_breakdown(summary).values())
        return max(0, min(self.config.MAX_SCORE, total))

    def score_actor(self, summary: ActorWindowSummary) -> ScoredActor:
        breakdown = self.score_breakdown(summary)
        total = max(0, min(self.config.MAX_SCORE, sum(breakdown.values())))
        return ScoredActor(summary=summary, suspicion_score=total, score_breakdown=breakdown)


# ============================================================================
# Ranking
# ============================================================================

def rank(scored: Iterable[ScoredActor], top_n: int = DEFAULT_TOP_N) -> list[ScoredActor]:
    """
    Order actors by score, then bet count, both descending.

    The sort is stable: actors equal on both keys keep their input order.

    Args:
        scored: Scored actors.
        top_n: Maximum number of actors to return.

    Returns:
        Ranked list of at most top_n actors.
    """
    if top_n < 0:
        raise ValueError("top_n must not be negative")
    ordered = sorted(
        scored,
        key=lambda actor: (actor.suspicion_score, actor.total_events),
        reverse=True,
    )
    return ordered[:top_n]


# ============================================================================
# Main Detection Pipeline
# ============================================================================

class SuspiciousBettorDetector:
    """
    Runs the full detection pipeline over a batch of bet events.

    Aggregates events per actor, filters suspicious patterns, scores
    the candidates and returns the top-ranked actors.
    """

    def __init__(self, config: Optional[DetectionConfig] = None):
        """
        Initialize the detector.

        Args:
            config: Detection configuration.
        """
        self.config = config or DetectionConfig()
        self.aggregator = WindowAggregator(self.config)
        self.pattern_filter = PatternFilter(self.config)
        self.scoring = ScoringEngine(self.config)

    def analyze(
        self,
        events: Iterable[Any],
        now: datetime,
        window_start: Optional[datetime] = None,
        top_n: Optional[int] = None,
        skip_invalid: bool = False
    ) -> AnalysisReport:
        """
        Find the most suspicious actors in a batch of events.

        Args:
            events: BetEvent instances or raw bet records.
            now: End of the analysis window.
            window_start: Optional later window start.
            top_n: Number of actors to return (config default if None).
            skip_invalid: Drop invalid raw records instead of raising.

        Returns:
            AnalysisReport with the ranked actors.

        Raises:
            InvalidEventError: On a bad record when skip_invalid is False.
        """
        parsed = parse_events(events, skip_invalid=skip_invalid)
        start, end = self.aggregator.window_bounds(now, window_start)

        summaries = self.aggregator.aggregate(parsed, now, window_start)
        candidates = self.pattern_filter.select(summaries)
        scored = [self.scoring.score_actor(summary) for summary in candidates]
        ranked = rank(scored, self.config.TOP_N if top_n is None else top_n)

        report = AnalysisReport(
            suspicious_actors=ranked,
            total_analyzed=len(candidates),
            actors_in_window=len(summaries),
            events_in_window=sum(s.total_events for s in summaries.values()),
            window_start=start,
            window_end=end,
        )

        logger.info(
            f"Analyzed {report.events_in_window} bets from {report.actors_in_window} actors: "
            f"{report.total_analyzed} candidates, {len(ranked)} reported"
        )
        return report

    def analyze_store(
        self,
        store,
        now: datetime,
        top_n: Optional[int] = None
    ) -> AnalysisReport:
        """
        Run the pipeline over the events a store holds for the window.

        Args:
            store: Object exposing get_bets_between(start, end).
            now: End of the analysis window.
            top_n: Number of actors to return.

        Returns:
            AnalysisReport with the ranked actors.
        """
        start, end = self.aggregator.window_bounds(now)
        events = store.get_bets_between(start, end)
        return self.analyze(events, now, top_n=top_n)
