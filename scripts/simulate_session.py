"""
CLI entry point for running a synthetic assessment session.
"""

import argparse
import json
import random
from datetime import datetime, timedelta, timezone

from ccis.session.assessment import SessionType
from ccis.session.manager import AssessmentSessionManager
from ccis.signals.interaction import ErrorType, HintType
from ccis.shared.config import settings
from ccis.shared.exceptions import StateViolationError
from ccis.shared.logging import setup_logging


class SimulatedClock:
    """Clock that only moves when the simulation advances it."""

    def __init__(self):
        self.now = datetime.now(timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, minutes: float) -> None:
        self.now += timedelta(minutes=minutes)


def run_task(manager, clock, rng, session_id, task_number, hint_rate, difficulty):
    """Drive one task interaction with randomized telemetry."""
    interaction = manager.open_interaction(
        session_id,
        task_id=f"task-{task_number}",
        task_difficulty=difficulty,
    )

    minutes = rng.uniform(5, 20)
    for i in range(rng.randint(0, int(hint_rate * 6))):
        interaction.record_hint_request(
            rng.choice(list(HintType)),
            request_time_ms=(i + 1) * 60000 * minutes / 6,
            strategic=rng.random() < 0.5,
        )
    for _ in range(rng.randint(0, 2)):
        interaction.record_error_recovery(
            rng.choice(list(ErrorType)),
            error_time_ms=rng.uniform(0, minutes * 60000),
            recovery_time_ms=rng.uniform(5000, 120000),
        )
    interaction.record_self_assessment(
        confidence_prediction=rng.uniform(0.3, 0.9),
        difficulty_prediction=rng.uniform(1, 5),
        actual_confidence=rng.uniform(0.3, 0.9),
        actual_difficulty=rng.uniform(1, 5),
    )

    clock.advance(minutes)
    return manager.complete_interaction(
        interaction.interaction_id,
        accuracy=rng.uniform(0.4, 1.0),
        actual_difficulty=rng.uniform(1, 5),
    )


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description="CCIS assessment session simulator")
    parser.add_argument("--person", default="learner-1", help="Person identifier")
    parser.add_argument("--competency", default="problem-solving", help="Competency identifier")
    parser.add_argument("--tasks", type=int, default=6, help="Number of tasks to simulate")
    parser.add_argument(
        "--session-type",
        choices=[t.value for t in SessionType],
        default=SessionType.FORMATIVE.value,
        help="Session type"
    )
    parser.add_argument(
        "--difficulty",
        choices=["beginner", "intermediate", "advanced", "expert"],
        default="intermediate",
        help="Task difficulty"
    )
    parser.add_argument(
        "--hint-rate",
        type=float,
        default=0.5,
        help="Relative hint usage, 0 (none) to 1 (heavy)"
    )
    parser.add_argument("--max-duration", type=int, default=180, help="Session limit in minutes")
    parser.add_argument("--seed", type=int, default=None, help="Random seed")

    args = parser.parse_args()

    # Setup logging
    setup_logging()

    rng = random.Random(args.seed)
    clock = SimulatedClock()
    manager = AssessmentSessionManager(settings=settings, clock=clock)

    session = manager.start_session(
        args.person,
        args.competency,
        session_type=SessionType(args.session_type),
        max_duration_minutes=args.max_duration,
    )

    for task_number in range(1, args.tasks + 1):
        run_task(manager, clock, rng, session.session_id, task_number, args.hint_rate, args.difficulty)

    try:
        analytics = manager.complete_session(session.session_id)
    except StateViolationError as e:
        analytics = session.analytics
        print(f"\nSession not completed: {e}")

    progress = manager.get_progress(session.session_id)

    # Print summary
    print("\n" + "=" * 50)
    print("Assessment Session Summary")
    print("=" * 50)
    print(f"Status: {progress.status}")
    print(f"CCIS level: {session.current_level}")
    print(f"Overall score: {progress.overall_score:.3f}")
    print(f"Confidence: {progress.overall_confidence:.3f}")
    print(f"Reliability: {progress.assessment_reliability.value}")
    print(f"Interventions: {', '.join(progress.interventions_triggered) or 'none'}")
    print(f"Gaming detected: {progress.gaming_pattern_detected}")
    print("=" * 50)
    print(json.dumps(analytics.model_dump(mode="json"), indent=2))


if __name__ == "__main__":
    main()
