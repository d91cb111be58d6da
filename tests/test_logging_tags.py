"""Tests for the per-step console reporting helpers."""

import pytest

from labelsim.logging_utils import (
    STEP_STYLES,
    Color,
    TickStep,
    colored,
    format_step,
    log_rejection,
    log_step,
)


def test_colored_wraps_text(monkeypatch):
    monkeypatch.delenv("LABELSIM_NO_COLOR", raising=False)
    text = colored("week 1", Color.BLUE, bold=True)
    assert text.startswith(Color.BOLD.value + Color.BLUE.value)
    assert text.endswith(Color.RESET.value)


def test_no_color_env_disables_ansi(monkeypatch):
    monkeypatch.setenv("LABELSIM_NO_COLOR", "1")
    assert colored("plain", Color.RED) == "plain"


def test_every_tick_step_has_a_style():
    assert set(STEP_STYLES) == set(TickStep)


@pytest.mark.parametrize(
    "step, line",
    [
        (TickStep.ACTIONS, "[•] [Week 3] actions: 2 changes recorded"),
        (TickStep.REVENUE, "[rng] [Week 3] revenue: 2 changes recorded"),
        (TickStep.SUMMARY, "[✓] [Week 3] summary: 2 changes recorded"),
    ],
)
def test_format_step_tags_by_step(step, line):
    assert format_step(3, step, "2 changes recorded") == line


def test_seeded_steps_print_yellow(monkeypatch, capsys):
    monkeypatch.delenv("LABELSIM_NO_COLOR", raising=False)
    log_step(4, TickStep.CHART, "'Glow' debuts at #12")
    log_step(4, 5, "1 song(s) recorded")
    out = capsys.readouterr().out.splitlines()
    assert all(line.startswith(Color.YELLOW.value) for line in out)
    assert "chart: 'Glow' debuts at #12" in out[0]
    assert "projects: 1 song(s) recorded" in out[1]


def test_plain_output_without_color(monkeypatch, capsys):
    monkeypatch.setenv("LABELSIM_NO_COLOR", "1")
    log_step(1, TickStep.TIERS, "Playlist access: niche")
    log_rejection("week 2 rejected")
    out = capsys.readouterr().out.splitlines()
    assert out == ["  [•] [Week 1] tiers: Playlist access: niche", "  [!] week 2 rejected"]


def test_unknown_step_number_is_rejected():
    with pytest.raises(ValueError):
        log_step(1, 12, "nothing")
