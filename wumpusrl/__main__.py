"""Headless training run: python -m wumpusrl --seed 0"""

from __future__ import annotations

import argparse
import logging
import sys

import numpy as np

from wumpusrl.config import DEFAULT_STEP_INTERVAL, SessionConfig
from wumpusrl.utils import new_session, print_policy_info, run_session


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Train a Q-learning agent in a Wumpus grid")
    parser.add_argument("--grid-size", type=int, default=8, help="Side length of the grid")
    parser.add_argument("--traps", type=int, default=3, help="Number of traps")
    parser.add_argument("--obstacles", type=int, default=4, help="Number of obstacles")
    parser.add_argument("--max-steps", type=int, default=200_000, help="Step limit per session")
    parser.add_argument("--step-interval", type=float, default=DEFAULT_STEP_INTERVAL,
                        help="Simulated seconds per step, used for the reported time")
    parser.add_argument("--sessions", type=int, default=1,
                        help="Sessions to run; the Q-table carries over to each new layout")
    parser.add_argument("--seed", type=int, default=None, help="Random seed")
    parser.add_argument("--log-level", default="INFO",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = SessionConfig(
            grid_size=args.grid_size,
            n_traps=args.traps,
            n_obstacles=args.obstacles,
            seed=args.seed,
            step_interval=args.step_interval,
        )
    except ValueError as e:
        parser.error(str(e))

    rng = np.random.default_rng(config.seed)
    agent = None
    for session in range(args.sessions):
        try:
            controller = new_session(config, agent=agent, rng=rng)
        except ValueError as e:
            parser.error(str(e))
        agent = controller.agent

        print(f"Session {session + 1}")
        print(controller.world.get_grid_string())
        summary = run_session(controller, args.max_steps)
        print("-" * 40)
        print(f"Won:              {summary.won}")
        print(f"Steps:            {summary.steps}")
        print(f"Simulated time:   {summary.steps * config.step_interval:.2f}s")
        print(f"Episodes:         {summary.episodes}")
        print(f"Losses:           {summary.losses}")
        print(f"Exploration rate: {summary.final_exploration_rate:.4f}")
        print(f"Avg ep. reward:   {summary.average_episode_reward:.2f}")
        print()
        print_policy_info(controller.world, agent)
        print()

    return 0


if __name__ == "__main__":
    sys.exit(main())
