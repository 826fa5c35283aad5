from concurrent.futures import ThreadPoolExecutor

from wordhunt.leaderboard import Leaderboard


def test_current_maximum_picks_highest_score():
    board = Leaderboard()
    board.update("ann", 3)
    board.update("bob", 7)
    leader = board.current_maximum()
    assert leader.player_id == "bob"
    assert leader.score == 7


def test_empty_board_has_no_maximum():
    assert Leaderboard().current_maximum() is None


def test_update_is_last_writer_wins():
    board = Leaderboard()
    board.update("ann", 5)
    board.update("ann", 2)
    assert board.get("ann") == 2
    assert len(board) == 1


def test_negative_scores_still_produce_a_leader():
    board = Leaderboard()
    board.update("ann", -3)
    board.update("bob", -1)
    assert board.current_maximum().player_id == "bob"


def test_snapshot_sorted_by_score():
    board = Leaderboard()
    for pid, score in [("a", 1), ("b", 9), ("c", 4)]:
        board.update(pid, score)
    assert [e.player_id for e in board.snapshot()] == ["b", "c", "a"]


def test_concurrent_updates_leave_one_entry_per_player():
    board = Leaderboard()
    players = [f"p{i}" for i in range(200)]

    def play(pid):
        n = int(pid[1:])
        for score in range(n % 7 + 1):
            board.update(pid, score)
            board.current_maximum()
        board.update(pid, n)

    with ThreadPoolExecutor(max_workers=16) as pool:
        list(pool.map(play, players))

    assert len(board) == 200
    assert all(board.get(pid) == int(pid[1:]) for pid in players)
    assert board.current_maximum().player_id == "p199"
