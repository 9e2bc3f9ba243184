import pytest

from arcticsniff.display import (
    COL_BLACK,
    COL_CYAN,
    COL_DKGREY,
    COL_GREEN,
    COL_GREY,
    COL_RED,
    COL_WHITE,
    ButtonDebouncer,
    FrameBuffer,
    StatusScreen,
)


def lit(fb, colour=None):
    return sum(1 for p in fb.pixels if (p != COL_BLACK if colour is None else p == colour))


# ---------------------------------------------------------------- FrameBuffer


def test_clear_fills_every_pixel():
    fb = FrameBuffer(8, 4)
    fb.clear(COL_RED)
    assert set(fb.pixels) == {COL_RED}
    assert len(fb.pixels) == 32


def test_pixel_outside_is_ignored():
    fb = FrameBuffer(4, 4)
    fb.pixel(-1, 0, COL_WHITE)
    fb.pixel(4, 0, COL_WHITE)
    fb.pixel(0, 4, COL_WHITE)
    assert lit(fb) == 0
    fb.pixel(3, 3, COL_WHITE)
    assert fb.get(3, 3) == COL_WHITE


def test_get_outside_raises():
    fb = FrameBuffer(4, 4)
    with pytest.raises(IndexError):
        fb.get(4, 0)


def test_invalid_size_raises():
    with pytest.raises(ValueError):
        FrameBuffer(0, 10)


def test_char_exclamation_glyph():
    fb = FrameBuffer(16, 16)
    fb.char(0, 0, "!", COL_WHITE)
    # '!' is column 2 with bits 0x5F: rows 0-4 and 6
    assert fb.get(2, 0) == COL_WHITE
    assert fb.get(2, 4) == COL_WHITE
    assert fb.get(2, 5) == COL_BLACK
    assert fb.get(2, 6) == COL_WHITE
    assert fb.get(0, 0) == COL_BLACK


def test_char_scale_multiplies_area():
    small = FrameBuffer(32, 32)
    small.char(0, 0, "A", COL_WHITE, 1)
    big = FrameBuffer(32, 32)
    big.char(0, 0, "A", COL_WHITE, 2)
    assert lit(big) == 4 * lit(small)


def test_unprintable_char_drawn_as_question_mark():
    a = FrameBuffer(16, 16)
    a.char(0, 0, "\x01", COL_WHITE)
    b = FrameBuffer(16, 16)
    b.char(0, 0, "?", COL_WHITE)
    assert a.pixels == b.pixels


def test_char_rejects_multiple_characters():
    with pytest.raises(ValueError):
        FrameBuffer().char(0, 0, "ab", COL_WHITE)


def test_string_advances_one_cell_per_character():
    a = FrameBuffer(32, 16)
    a.string(0, 0, "Hi", COL_WHITE)
    b = FrameBuffer(32, 16)
    b.char(0, 0, "H", COL_WHITE)
    b.char(6, 0, "i", COL_WHITE)
    assert a.pixels == b.pixels


def test_rect_is_clipped():
    fb = FrameBuffer(10, 10)
    fb.rect(8, 8, 5, 5, COL_GREEN)
    assert lit(fb, COL_GREEN) == 4
    assert fb.get(9, 9) == COL_GREEN


def test_circle_radius_zero_is_single_pixel():
    fb = FrameBuffer(10, 10)
    fb.circle(5, 5, 0, COL_RED)
    assert lit(fb) == 1
    assert fb.get(5, 5) == COL_RED


def test_circle_is_symmetric_and_bounded():
    fb = FrameBuffer(20, 20)
    fb.circle(10, 10, 4, COL_RED)
    for y in range(20):
        for x in range(20):
            inside = (x - 10) ** 2 + (y - 10) ** 2 <= 16
            assert (fb.get(x, y) == COL_RED) == inside


# -------------------------------------------------------------- StatusScreen


def test_splash_draws_title():
    fb = StatusScreen("1.0").splash()
    assert lit(fb, COL_CYAN) > 0
    assert lit(fb, COL_WHITE) > 0


def test_refresh_header_and_separators():
    fb = StatusScreen("0.3.0").refresh("10.0.0.2", False, 0, 0, 0, True)
    assert fb.get(4, 28) == COL_DKGREY
    assert fb.get(123, 46) == COL_DKGREY
    assert lit(fb, COL_CYAN) > 0


def test_refresh_without_ip_shows_no_wifi_in_red():
    fb = StatusScreen().refresh("", False, 0, 0, 0, True)
    assert fb.get(4, 34) == COL_RED  # first column of 'N' is fully lit


def test_refresh_with_ip_shows_label():
    fb = StatusScreen().refresh("10.0.0.2", False, 0, 0, 0, True)
    assert fb.get(5, 34) == COL_GREY  # 'I' column 1 top pixel
    assert lit(fb, COL_RED) == 0


def test_idle_screens_differ_by_psram():
    with_psram = StatusScreen().refresh("10.0.0.2", False, 0, 0, 0, True).pixels
    without = StatusScreen().refresh("10.0.0.2", False, 0, 0, 0, False).pixels
    assert with_psram != without


def test_recording_bar_empty_is_background():
    fb = StatusScreen().refresh("10.0.0.2", True, 0, 1000, 0, True)
    assert fb.get(4, 94) == COL_DKGREY


def test_recording_bar_low_usage_is_green():
    fb = StatusScreen().refresh("10.0.0.2", True, 500, 1000, 3, True)
    assert fb.get(4, 94) == COL_GREEN


def test_recording_bar_high_usage_is_red_and_clamped():
    fb = StatusScreen().refresh("10.0.0.2", True, 5000, 1000, 3, True)
    assert fb.get(4, 94) == COL_RED
    assert fb.get(123, 94) == COL_RED


def test_recording_dot_blinks():
    screen = StatusScreen()
    first = screen.refresh("10.0.0.2", True, 0, 1000, 0, True)
    assert screen.blink_on is True
    assert first.get(12, 58) == COL_RED
    second = screen.refresh("10.0.0.2", True, 0, 1000, 0, True)
    assert screen.blink_on is False
    assert second.get(12, 58) == COL_BLACK


def test_provisioning_dot_blinks():
    screen = StatusScreen()
    assert screen.refresh_provisioning("AP").get(120, 36) == COL_GREEN
    assert screen.refresh_provisioning("AP").get(120, 36) == COL_BLACK


def test_provisioning_long_name_left_aligned():
    fb = StatusScreen().refresh_provisioning("Wxxxxxxxxxxx")
    assert fb.get(4, 68) == COL_WHITE


def test_provisioning_short_name_large_and_centred():
    short = StatusScreen().refresh_provisioning("W")
    none = StatusScreen().refresh_provisioning("")
    assert short.get(4, 68) == COL_BLACK
    assert lit(short, COL_WHITE) > lit(none, COL_WHITE)
    band = [short.get(x, 66) for x in range(128)]
    whites = [x for x, p in enumerate(band) if p == COL_WHITE]
    assert whites and 40 < whites[0] < 88


# ----------------------------------------------------------- ButtonDebouncer


def test_press_registers_once_after_stable_ticks():
    deb = ButtonDebouncer(3)
    results = [deb.poll(True) for _ in range(8)]
    assert results.count(True) == 1
    assert results[:3] == [False, False, False]


def test_bounce_does_not_register():
    deb = ButtonDebouncer(3)
    results = [deb.poll(v) for v in [True, False, True, False, True, False]]
    assert results == [False] * 6


def test_release_and_press_again_registers_again():
    deb = ButtonDebouncer(2)
    seq = [True] * 5 + [False] * 5 + [True] * 5
    assert sum(deb.poll(v) for v in seq) == 2


def test_negative_ticks_rejected():
    with pytest.raises(ValueError):
        ButtonDebouncer(-1)