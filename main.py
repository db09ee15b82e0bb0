"""
Main entry point for the Risk rules engine.
Demonstrates core functionality with a short seeded game between computer players.
"""

import logging
import random

from riskgame.config import LOG_LEVEL
from riskgame.engine.actions import deploy
from riskgame.engine.ai import decide_placements, play_ai_turn
from riskgame.engine.definitions import get_classic_map
from riskgame.engine.dice import DiceRoller, SeededRandomSource
from riskgame.engine.events import BATTLE_RESOLVED, TERRITORY_CONQUERED, PLAYER_ELIMINATED, VICTORY
from riskgame.engine.reducer import apply_move
from riskgame.engine.state import STATUS_SETUP, STATUS_PLAYING
from riskgame.engine.utils import create_game, add_player, start_game, print_game_state

SEED = 7
MAX_TURNS = 30


def main():
    logging.basicConfig(level=LOG_LEVEL)
    print("Risk Rules Engine - seeded demo")
    print("=" * 60)

    game_map = get_classic_map()
    roller = DiceRoller(SeededRandomSource(SEED))

    state = create_game("demo", game_map)
    for player_id, name in (("ann", "Ann"), ("bob", "Bob"), ("cy", "Cy")):
        state = add_player(state, player_id, name, is_ai=True)
    state = start_game(state, game_map, rng=random.Random(SEED))

    print("\n[SETUP] placing initial armies")
    while state.status == STATUS_SETUP:
        for player in state.active_players():
            placements = decide_placements(state, player.id)
            if placements:
                territory_id, troops = placements[0]
                state, _ = apply_move(state, deploy(player.id, territory_id, troops), game_map)
            if state.status != STATUS_SETUP:
                break

    print_game_state(state, game_map)

    while state.status == STATUS_PLAYING and state.turn_number <= MAX_TURNS:
        current = state.current_player()
        state, moves, events = play_ai_turn(state, game_map, roller=roller)
        for event in events:
            if event.type == BATTLE_RESOLVED:
                p = event.payload
                print(f"  {current.id}: {p.get('from_territory')} -> {p.get('to_territory')} "
                      f"{p['attacker_dice']} vs {p['defender_dice']}")
            elif event.type in (TERRITORY_CONQUERED, PLAYER_ELIMINATED, VICTORY):
                print(f"  ** {event.type}: {event.payload}")

    print("\n[FINAL STATE]")
    print_game_state(state, game_map)


if __name__ == "__main__":
    main()
