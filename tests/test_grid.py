"""Grid construction, growth and rendering."""

import unittest

from grid import DEFAULT_CELL, Grid


class TestGridFromSource(unittest.TestCase):
    def test_dimensions_from_longest_line(self):
        grid = Grid.from_source("ab\nabcd\nx")
        self.assertEqual((grid.rows, grid.cols), (3, 4))

    def test_short_rows_padded_with_spaces(self):
        grid = Grid.from_source("ab\nabcd")
        self.assertEqual(grid.read(0, 2), DEFAULT_CELL)
        self.assertEqual(grid.read(0, 3), DEFAULT_CELL)
        self.assertEqual(grid.read(1, 3), ord("d"))

    def test_trailing_newline_does_not_add_row(self):
        grid = Grid.from_source("91+.@\n")
        self.assertEqual((grid.rows, grid.cols), (1, 5))

    def test_last_line_without_newline_is_a_row(self):
        grid = Grid.from_source("ab\ncd")
        self.assertEqual(grid.rows, 2)
        self.assertEqual(grid.read(1, 1), ord("d"))

    def test_blank_lines_are_rows(self):
        grid = Grid.from_source("ab\n\ncd")
        self.assertEqual(grid.rows, 3)
        self.assertEqual(grid.read(1, 0), DEFAULT_CELL)

    def test_empty_source_has_one_blank_cell(self):
        grid = Grid.from_source("")
        self.assertEqual((grid.rows, grid.cols), (1, 1))
        self.assertEqual(grid.read(0, 0), DEFAULT_CELL)

    def test_wide_characters_truncate_to_byte(self):
        grid = Grid.from_source("€")
        self.assertEqual(grid.read(0, 0), 0x20AC & 0xFF)


class TestGridGrowth(unittest.TestCase):
    def test_write_in_bounds_does_not_grow(self):
        grid = Grid(2, 3)
        grid.write(1, 2, 65)
        self.assertEqual((grid.rows, grid.cols), (2, 3))
        self.assertEqual(grid.read(1, 2), 65)

    def test_write_beyond_bounds_grows_and_default_fills(self):
        grid = Grid(2, 3)
        grid.write(0, 0, 1)
        grid.write(1, 2, 2)
        grid.write(4, 5, 7)
        self.assertEqual((grid.rows, grid.cols), (5, 6))
        self.assertEqual(grid.read(4, 5), 7)
        # old content untouched
        self.assertEqual(grid.read(0, 0), 1)
        self.assertEqual(grid.read(1, 2), 2)
        for row in range(grid.rows):
            for col in range(grid.cols):
                if (row, col) in {(0, 0), (1, 2), (4, 5)}:
                    continue
                self.assertEqual(grid.read(row, col), DEFAULT_CELL, (row, col))

    def test_growth_keeps_matrix_rectangular(self):
        grid = Grid.from_source("a\nbcd")
        grid.write(0, 9, 1)
        grid.write(6, 0, 2)
        cells = grid.snapshot()
        self.assertEqual(cells.shape, (7, 10))
        self.assertEqual((grid.rows, grid.cols), (7, 10))

    def test_growth_is_monotonic(self):
        grid = Grid(5, 5)
        grid.write(1, 1, 9)
        self.assertEqual((grid.rows, grid.cols), (5, 5))
        grid.write(5, 0, 9)
        self.assertEqual((grid.rows, grid.cols), (6, 5))
        grid.write(0, 5, 9)
        self.assertEqual((grid.rows, grid.cols), (6, 6))

    def test_write_masks_to_byte(self):
        grid = Grid(1, 1)
        grid.write(0, 0, 300)
        self.assertEqual(grid.read(0, 0), 300 & 0xFF)

    def test_out_of_range_read_does_not_grow(self):
        grid = Grid(2, 2)
        self.assertEqual(grid.read(9, 9), DEFAULT_CELL)
        self.assertEqual((grid.rows, grid.cols), (2, 2))
        self.assertFalse(grid.contains(9, 9))
        self.assertTrue(grid.contains(1, 1))

    def test_snapshot_is_a_copy(self):
        grid = Grid(1, 1)
        cells = grid.snapshot()
        cells[0, 0] = 0
        self.assertEqual(grid.read(0, 0), DEFAULT_CELL)


class TestGridRender(unittest.TestCase):
    def test_render_pads_rows(self):
        grid = Grid.from_source("ab\nc")
        self.assertEqual(grid.render(), "ab\nc ")

    def test_render_after_growth(self):
        grid = Grid.from_source("@")
        grid.write(1, 1, ord("x"))
        self.assertEqual(grid.render(), "@ \n x")
