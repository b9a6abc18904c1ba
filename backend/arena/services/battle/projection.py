from arena.models import ROUND_ACTIVE, SLOTS, TIE, player_label


def project_state(session, viewer: int) -> dict:
    """Build the snapshot one player is allowed to see.

    The viewer's own submitted text is included; the opponent's never is.
    ``round_deadline`` is only present while a round is running so clients
    can render their own countdown between polls.
    """
    with session.lock:
        players = []
        for slot in SLOTS:
            data = session.slots[slot].to_dict(include_text=(slot == viewer))
            data['player'] = player_label(slot)
            data['rematch_requested'] = session.rematch_requests[slot]
            players.append(data)

        if session.winner is None or session.winner == TIE:
            winner = session.winner
        else:
            winner = player_label(session.winner)

        payload = {
            'game_code': session.code,
            'you': player_label(viewer),
            'phase': session.phase,
            'round_number': session.round_number,
            'winner': winner,
            'players': players,
            'last_round': dict(session.history[-1]) if session.history else None,
            'durations': {
                'round': session.round_duration,
                'result_delay': session.result_delay,
            },
        }
        if session.phase == ROUND_ACTIVE and session.round_deadline is not None:
            payload['round_deadline'] = session.round_deadline
        return payload
