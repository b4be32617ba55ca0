import pytest

from trivia_tiles.progress import FoundWords, ProgressTracker
from trivia_tiles.telemetry import MemorySink, Telemetry

WORDS = ['able', 'bead', 'cafe', 'dace', 'face', 'fade', 'aged', 'badge', 'faded', 'decaf', 'abba', 'baggage']


def test_found_words_keep_discovery_order_and_reject_duplicates():
    words = FoundWords()
    assert words.add('Face')
    assert words.add('able')
    assert not words.add('FACE ')
    assert words.as_list() == ['face', 'able']
    assert 'ABLE' in words
    assert len(words) == 2


def test_ten_word_puzzle_three_found_unlocks_one_clue():
    tracker = ProgressTracker(10, clue_thresholds=[0.25, 0.5])
    for w in WORDS[:3]:
        tracker.record(w)
    assert tracker.progress() == pytest.approx(0.3)
    assert tracker.unlocked_clue_count() == 1
    assert tracker.unlocked_clue_count([0.5, 0.25]) == 1


def test_progress_is_zero_without_words_to_find():
    tracker = ProgressTracker(0)
    tracker.record('able')
    assert tracker.progress() == 0.0
    assert tracker.unlocked_clue_count() == 0
    assert not tracker.should_show_final_challenge()


def test_progress_is_monotonic_and_bounded():
    tracker = ProgressTracker(7)
    previous = tracker.progress()
    for w in WORDS + ['able', 'cafe']:
        tracker.record(w)
        current = tracker.progress()
        assert previous <= current <= 1.0
        previous = current
    assert tracker.progress() == 1.0


def test_record_reports_each_clue_once():
    sink = MemorySink()
    tracker = ProgressTracker(4, telemetry=Telemetry([sink]))
    assert tracker.record('able').new_clues == [1]
    assert tracker.record('bead').new_clues == [2]
    assert tracker.record('bead').new_clues == []
    # 0.75 crosses 0.60 only
    assert tracker.record('cafe').new_clues == [3]
    milestones = tracker.record('dace')
    assert milestones.new_clues == [4]
    assert milestones.final_challenge
    labels = [e.label for e in sink.events if e.action == 'Clue Unlocked']
    assert labels == ['Clue 1', 'Clue 2', 'Clue 3', 'Clue 4']


def test_big_jump_unlocks_several_clues_at_once():
    tracker = ProgressTracker(2)
    assert tracker.record('able').new_clues == [1, 2]
    assert tracker.unlocked_clue_count() == 2
    assert tracker.record('bead').new_clues == [3, 4]


def test_first_word_can_unlock_a_clue():
    tracker = ProgressTracker(4)
    assert tracker.record('able').new_clues == [1]


def test_thresholds_are_configurable_and_sorted():
    tracker = ProgressTracker(10, clue_thresholds=[0.5, 0.1], final_threshold=0.2)
    tracker.record('able')
    assert tracker.clue_thresholds == [0.1, 0.5]
    assert tracker.unlocked_clue_count() == 1
    assert not tracker.should_show_final_challenge()
    tracker.record('bead')
    assert tracker.should_show_final_challenge()


def test_threshold_out_of_range_rejected():
    with pytest.raises(ValueError):
        ProgressTracker(10, clue_thresholds=[1.5])


def test_final_challenge_is_one_shot():
    sink = MemorySink()
    tracker = ProgressTracker(10, telemetry=Telemetry([sink]))
    for w in WORDS[:8]:
        assert not tracker.record(w).final_challenge
    assert tracker.record(WORDS[8]).final_challenge
    assert tracker.should_show_final_challenge()
    # Already visible: not announced again
    assert not tracker.record(WORDS[9]).final_challenge

    assert tracker.complete_final_challenge()
    assert not tracker.complete_final_challenge()
    assert not tracker.should_show_final_challenge()
    assert not tracker.record(WORDS[10]).final_challenge
    assert sink.actions().count(('Trivia', 'Final Trivia Shown')) == 1
    assert sink.actions().count(('Trivia', 'Final Trivia Success')) == 1


def test_dismissed_final_challenge_returns_on_next_word():
    tracker = ProgressTracker(10, final_threshold=0.1)
    assert tracker.record('able').final_challenge
    tracker.dismiss_final_challenge()
    assert tracker.should_show_final_challenge()
    assert tracker.record('bead').final_challenge


def test_reset_starts_a_new_puzzle():
    tracker = ProgressTracker(2)
    tracker.record('able')
    tracker.record('bead')
    tracker.complete_final_challenge()
    tracker.reset(5)
    assert tracker.progress() == 0.0
    assert tracker.unlocked_clue_count() == 0
    assert not tracker.final_completed
    assert len(tracker.found_words) == 0
