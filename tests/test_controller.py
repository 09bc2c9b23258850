"""
Unit Tests for EpisodeController

Tests the step loop, episode-loss resets, the absorbing win state and the
reference scenarios on an 8x8 grid.
"""

import logging

import pytest
import numpy as np

from wumpusrl.agent import QLearningAgent
from wumpusrl.config import AgentConfig
from wumpusrl.controller import EpisodeController, EpisodeOutcome, SessionStatus
from wumpusrl.grid_env import (
    ACTION_LEFT,
    ACTION_RIGHT,
    ACTION_UP,
    GridWorld,
    HazardMap,
)


def make_world():
    hazards = HazardMap(
        grid_size=8,
        goal=(7, 7),
        wumpus=(5, 5),
        traps=frozenset({(2, 2), (6, 1), (1, 6)}),
        obstacles=frozenset({(4, 4), (3, 6), (6, 3), (0, 4)}),
    )
    return GridWorld(hazards)


@pytest.fixture
def controller():
    """Controller on the 8x8 reference world with a seeded agent."""
    world = make_world()
    agent = QLearningAgent(world.n_states, rng=np.random.default_rng(0))
    return EpisodeController(world, agent)


def force_action(monkeypatch, controller, action):
    monkeypatch.setattr(controller.agent, "choose_action", lambda state: action)


class TestConstruction:
    """Tests for controller construction."""

    def test_initial_state(self, controller):
        """Test a new controller is running from (0,0) in episode 0."""
        assert controller.status is SessionStatus.RUNNING
        assert controller.position == (0, 0)
        assert controller.episode == 0
        assert controller.exploration_rate == 1.0
        assert controller.last_action is None

    def test_mismatched_agent_error(self):
        """Test error when the agent's table doesn't fit the world."""
        with pytest.raises(ValueError, match="doesn't match"):
            EpisodeController(make_world(), QLearningAgent(16))

    def test_start_out_of_bounds_error(self):
        """Test error when the start cell is off the grid."""
        world = make_world()
        with pytest.raises(ValueError, match="outside"):
            EpisodeController(world, QLearningAgent(world.n_states), start=(8, 0))

    def test_start_on_hazard_error(self):
        """Test error when the start cell is a trap."""
        world = make_world()
        with pytest.raises(ValueError, match="not a free cell"):
            EpisodeController(world, QLearningAgent(world.n_states), start=(2, 2))


class TestStep:
    """Tests for ordinary and blocked steps."""

    def test_ordinary_step(self, monkeypatch, controller):
        """Test moving Up from (3,3) lands on (3,4) with -1."""
        controller.body.move_to((3, 3))
        force_action(monkeypatch, controller, ACTION_UP)

        outcome = controller.step()

        assert outcome.origin == (3, 3)
        assert outcome.target == (3, 4)
        assert outcome.reward == -1.0
        assert outcome.outcome is EpisodeOutcome.IN_PROGRESS
        assert not outcome.episode_ended
        assert controller.position == (3, 4)
        assert controller.last_action == ACTION_UP

    def test_wall_step(self, monkeypatch, controller):
        """Test bumping into the border keeps the position and session."""
        force_action(monkeypatch, controller, ACTION_LEFT)
        outcome = controller.step()
        assert outcome.blocked
        assert outcome.reward == -10.0
        assert controller.position == (0, 0)
        assert controller.status is SessionStatus.RUNNING

    def test_obstacle_step(self, monkeypatch, controller):
        """Test bumping into an obstacle keeps the position."""
        controller.body.move_to((4, 3))
        force_action(monkeypatch, controller, ACTION_UP)
        outcome = controller.step()
        assert outcome.reward == -5.0
        assert controller.position == (4, 3)

    def test_update_fed_with_transition(self, monkeypatch, controller):
        """Test the observed transition is fed to the agent's update."""
        force_action(monkeypatch, controller, ACTION_LEFT)
        controller.step()
        # 0.8 * (-10 + 0.9 * 0 - 0)
        assert controller.agent.q_values(0)[ACTION_LEFT] == pytest.approx(-8.0)

    def test_step_does_not_decay_epsilon(self, monkeypatch, controller):
        """Test non-terminal steps leave epsilon and the episode alone."""
        force_action(monkeypatch, controller, ACTION_RIGHT)
        for _ in range(3):
            controller.step()
        assert controller.exploration_rate == 1.0
        assert controller.episode == 0


class TestEpisodeLoss:
    """Tests for the reset performed after a loss."""

    def test_trap_scenario(self, monkeypatch, controller):
        """Test stepping into the trap at (2,2) resets the episode."""
        controller.body.move_to((2, 1))
        force_action(monkeypatch, controller, ACTION_UP)
        hazards_before = controller.hazards

        outcome = controller.step()

        assert outcome.target == (2, 2)
        assert outcome.reward == -100.0
        assert outcome.outcome is EpisodeOutcome.LOST
        assert outcome.episode == 0
        assert controller.position == (0, 0)
        assert controller.episode == 1
        assert controller.exploration_rate == pytest.approx(0.9995)
        assert controller.hazards is hazards_before
        assert controller.status is SessionStatus.RUNNING
        assert controller.last_action is None
        assert controller.state.steps == 0
        assert controller.agent.q_values(controller.world.state_index((2, 1)))[ACTION_UP] == \
            pytest.approx(-80.0)

    def test_wumpus_loss(self, monkeypatch, controller):
        """Test stepping onto the live wumpus loses the episode."""
        controller.body.move_to((4, 5))
        force_action(monkeypatch, controller, ACTION_RIGHT)
        outcome = controller.step()
        assert outcome.outcome is EpisodeOutcome.LOST
        assert controller.position == (0, 0)

    def test_next_step_starts_from_origin(self, monkeypatch, controller):
        """Test the step after a loss starts from (0,0) in the next episode."""
        controller.body.move_to((2, 1))
        force_action(monkeypatch, controller, ACTION_UP)
        controller.step()

        force_action(monkeypatch, controller, ACTION_RIGHT)
        outcome = controller.step()
        assert outcome.origin == (0, 0)
        assert outcome.episode == 1

    def test_repeated_losses(self, monkeypatch, controller):
        """Test each loss adds one episode and decays epsilon once."""
        force_action(monkeypatch, controller, ACTION_UP)
        for expected_episode in range(1, 6):
            controller.body.move_to((2, 1))
            controller.step()
            assert controller.episode == expected_episode
        assert controller.exploration_rate == pytest.approx(0.9995 ** 5)

    def test_exploration_floor(self, monkeypatch):
        """Test a loss never pushes epsilon below 0.01."""
        world = make_world()
        config = AgentConfig(exploration_rate=0.01)
        ctrl = EpisodeController(world, QLearningAgent(world.n_states, config=config))
        force_action(monkeypatch, ctrl, ACTION_UP)
        ctrl.body.move_to((2, 1))
        ctrl.step()
        assert ctrl.exploration_rate == 0.01

    def test_loss_logged_at_debug(self, monkeypatch, controller, caplog):
        """Test losses are logged at DEBUG so INFO output stays quiet."""
        controller.body.move_to((2, 1))
        force_action(monkeypatch, controller, ACTION_UP)

        with caplog.at_level(logging.DEBUG, logger="wumpusrl.controller"):
            controller.step()

        loss_records = [r for r in caplog.records if "lost" in r.getMessage()]
        assert len(loss_records) == 1
        assert loss_records[0].levelno == logging.DEBUG
        assert not any(r.levelno >= logging.INFO for r in caplog.records)


class TestSessionWin:
    """Tests for the absorbing SESSION_WON state."""

    def test_goal_scenario(self, monkeypatch, controller):
        """Test stepping onto the goal at (7,7) wins the session."""
        controller.body.move_to((7, 6))
        force_action(monkeypatch, controller, ACTION_UP)

        outcome = controller.step()

        assert outcome.target == (7, 7)
        assert outcome.reward == 100.0
        assert outcome.session_won
        assert controller.status is SessionStatus.SESSION_WON
        assert controller.is_won
        assert controller.position == (7, 7)
        assert controller.episode == 0
        assert controller.exploration_rate == 1.0

    def test_no_steps_after_win(self, monkeypatch, controller):
        """Test a won session processes no further steps."""
        controller.body.move_to((7, 6))
        force_action(monkeypatch, controller, ACTION_UP)
        controller.step()
        q_before = controller.agent.q_table

        for _ in range(5):
            assert controller.step() is None

        assert np.array_equal(controller.agent.q_table, q_before)
        assert controller.position == (7, 7)

    def test_win_logged_at_info(self, monkeypatch, controller, caplog):
        """Test the session win is logged at INFO."""
        controller.body.move_to((7, 6))
        force_action(monkeypatch, controller, ACTION_UP)

        with caplog.at_level(logging.INFO, logger="wumpusrl.controller"):
            controller.step()

        assert any(
            r.levelno == logging.INFO and "won" in r.getMessage() for r in caplog.records
        )


class TestLearning:
    """End-to-end learning on a fixed small layout."""

    def test_eventually_wins(self):
        """Test the agent reaches the goal on a 4x4 layout."""
        world = GridWorld.from_lines(["...G", "..T.", "...#", "S.W."])
        agent = QLearningAgent(world.n_states, rng=np.random.default_rng(0))
        controller = EpisodeController(world, agent)

        losses = 0
        for _ in range(50000):
            outcome = controller.step()
            if outcome is None:
                break
            if outcome.outcome is EpisodeOutcome.LOST:
                losses += 1

        assert controller.is_won
        assert controller.episode == losses
        assert controller.exploration_rate == pytest.approx(max(0.01, 0.9995 ** losses))
        assert np.all(np.isfinite(agent.q_table))
