"""
Card Guesser CLI - Command-line interface for the engine.

Usage:
    cardguess parse <label>                  Parse a detector label
    cardguess evaluate <guess> <target>      Score a guess against a target
    cardguess simulate --label 10h ...       Play a scripted game
    cardguess serve                          Run the API server
"""

import argparse
import asyncio
import random
import sys

from .logging_utils import setup_logging


def main(argv=None):
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Card Guesser - detection-driven card guessing game",
        prog="cardguess",
    )
    parser.add_argument("--log-level", default=None, help="DEBUG, INFO, WARNING, ERROR")
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # Parse command
    parse_parser = subparsers.add_parser("parse", help="Parse a detector label")
    parse_parser.add_argument("label", help="Label such as 10h or Ks")

    # Evaluate command
    evaluate_parser = subparsers.add_parser("evaluate", help="Score a guess against a target")
    evaluate_parser.add_argument("guess", help="Guess label")
    evaluate_parser.add_argument("target", help="Target label")

    # Simulate command
    simulate_parser = subparsers.add_parser("simulate", help="Play a scripted game")
    simulate_parser.add_argument(
        "--label", "-l", action="append", default=[],
        help="Detected label per guess (repeatable)",
    )
    simulate_parser.add_argument("--target", help="Pin the target card (default: random)")
    simulate_parser.add_argument("--attempts", type=int, default=None, help="Max attempts")
    simulate_parser.add_argument("--confidence", type=float, default=0.9, help="Confidence of each detection")
    simulate_parser.add_argument("--seed", type=int, default=None, help="Random seed for the target")

    # Serve command
    serve_parser = subparsers.add_parser("serve", help="Run the API server")
    serve_parser.add_argument("--host", default="127.0.0.1")
    serve_parser.add_argument("--port", type=int, default=8000)

    args = parser.parse_args(argv)

    if args.log_level:
        setup_logging(args.log_level)
    else:
        setup_logging("WARNING")

    if args.command == "parse":
        return cmd_parse(args)
    elif args.command == "evaluate":
        return cmd_evaluate(args)
    elif args.command == "simulate":
        return asyncio.run(cmd_simulate(args))
    elif args.command == "serve":
        return cmd_serve(args)
    else:
        parser.print_help()
        return 1


def cmd_parse(args):
    """Parse a detector label."""
    from .engine_core.cards import parse_card_label

    card = parse_card_label(args.label)
    if card is None:
        print(f"Not a card: {args.label!r}")
        return 1

    print(f"{card}  rank={card.rank.value} (index {card.rank.index}) "
          f"suit={card.suit.value} color={card.color.value}")
    return 0


def cmd_evaluate(args):
    """Score a guess against a target."""
    from .engine_core.cards import Card
    from .engine_core.feedback import evaluate

    try:
        guess = Card.from_label(args.guess)
        target = Card.from_label(args.target)
    except ValueError as e:
        print(f"Error: {e}")
        return 1

    feedback = evaluate(guess, target)
    print(f"Guess {guess} vs target {target}")
    print(format_feedback(feedback))
    if feedback.is_win:
        print("Match!")
    return 0


def format_feedback(feedback):
    """One HUD line: rank arrow, color, suit."""
    icons = feedback.indicators()
    return (
        f"  {icons['rank']} {feedback.rank_relation.value}"
        f"   {icons['color']} COLOR"
        f"   {icons['suit']} SUIT"
    )


async def cmd_simulate(args):
    """Play a scripted game: one detection tick per label, submit when ready."""
    from .config import GameConfig
    from .engine_core.cards import Card
    from .engine_core.state import GameStatus
    from .session import GameController
    from .vision import DetectionSample, ScriptedDetector, StaticCamera

    if not args.label:
        print("Error: give at least one --label")
        return 1

    try:
        target = Card.from_label(args.target) if args.target else None
        config = GameConfig.from_env().with_overrides(max_attempts=args.attempts)
        detector = ScriptedDetector(
            [DetectionSample(label, args.confidence)] for label in args.label
        )
    except ValueError as e:
        print(f"Error: {e}")
        return 1

    controller = GameController(
        detector=detector,
        camera=StaticCamera(),
        config=config,
        rng=random.Random(args.seed),
    )

    await controller.setup(start_game=False)
    controller.start_new_game(target_card=target, start_polling=False)
    print(f"New game: {config.max_attempts} attempts")

    try:
        for label in args.label:
            if controller.session.is_terminal:
                break

            await controller.tick_once()
            if controller.status != GameStatus.READY_TO_SUBMIT:
                print(f"{label}: no card detected")
                continue

            result = controller.submit_guess()
            record = result.record
            print(f"Guess {len(controller.session.history)}: {record.card}")
            print(format_feedback(record.feedback))
    finally:
        await controller.close()

    snapshot = controller.snapshot()
    if snapshot.status == GameStatus.WON:
        print(f"YOU WIN! The card was {snapshot.target_card}")
    elif snapshot.status == GameStatus.LOST:
        print(f"GAME OVER. The card was {snapshot.target_card}")
    else:
        print(f"Out of labels with {snapshot.attempts_remaining} attempt(s) left")
    return 0


def cmd_serve(args):
    """Run the API server."""
    from .config import GameConfig

    try:
        GameConfig.from_env()
    except ValueError as e:
        print(f"Error: invalid CARDGUESS_* configuration: {e}")
        return 1

    import uvicorn

    uvicorn.run("cardguess.api.app:app", host=args.host, port=args.port)
    return 0


if __name__ == "__main__":
    sys.exit(main())
