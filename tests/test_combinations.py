import itertools

import pytest
import torch as t

from cubical.combinations import Combination, Combinations, binomial


@pytest.mark.parametrize("n", range(0, 7))
def test_count_matches_binomial(n):
    for k in range(n + 1):
        combinations = Combinations(n, k)
        assert combinations.count() == binomial(n, k)
        assert len(combinations) == binomial(n, k)


@pytest.mark.parametrize("n", range(0, 7))
def test_index_of_is_combinatorial_number_system(n):
    for k in range(n + 1):
        combinations = Combinations(n, k)
        for axes in itertools.combinations(range(n), k):
            expected = sum(binomial(a, j + 1) for j, a in enumerate(axes))
            assert combinations.index_of(axes) == expected
            assert combinations.index_of(Combination(n, axes)) == expected
            assert combinations.at(expected) == Combination(n, axes)


@pytest.mark.parametrize("n", range(0, 7))
def test_at_is_bijective(n):
    for k in range(n + 1):
        combinations = Combinations(n, k)
        seen = set()
        for i in range(combinations.count()):
            combination = combinations[i]
            assert combination.k == k
            assert combinations.index_of(combination) == i
            seen.add(combination.axes)

        assert seen == set(itertools.combinations(range(n), k))


def test_small_ordering():
    combinations = Combinations(3, 2)
    assert [combinations.at(i).axes for i in range(3)] == [(0, 1), (0, 2), (1, 2)]

    # For n >= 4, the combinatorial number system ranks by the largest axis first.
    combinations = Combinations(4, 2)
    assert combinations.index_of((0, 3)) == 3
    assert combinations.index_of((1, 2)) == 2


def test_in_out_axes():
    combination = Combination(5, (1, 3))

    assert combination.in_axes == (1, 3)
    assert combination.out_axes == (0, 2, 4)
    assert [combination.axis_in(j) for j in range(2)] == [1, 3]
    assert [combination.axis_out(j) for j in range(3)] == [0, 2, 4]

    with pytest.raises(IndexError):
        combination.axis_in(2)

    with pytest.raises(IndexError):
        combination.axis_out(3)


def test_empty_combination():
    combinations = Combinations(3, 0)
    assert combinations.count() == 1

    combination = combinations.at(0)
    assert combination.in_axes == ()
    assert combination.out_axes == (0, 1, 2)
    assert combinations.index_of(combination) == 0


def test_full_combination():
    combinations = Combinations(3, 3)
    assert combinations.count() == 1

    combination = combinations.at(0)
    assert combination.in_axes == (0, 1, 2)
    assert combination.out_axes == ()


@pytest.mark.parametrize("n, k", [(3, 4), (3, -1), (-1, 0)])
def test_invalid_configuration(n, k):
    with pytest.raises(ValueError):
        Combinations(n, k)


@pytest.mark.parametrize("index", [-1, 6, 100])
def test_at_out_of_range(index):
    with pytest.raises(IndexError):
        Combinations(4, 2).at(index)


@pytest.mark.parametrize("axes", [(1, 1), (2, 1), (0, 4), (-1, 2)])
def test_malformed_combination(axes):
    with pytest.raises(ValueError):
        Combination(4, axes)

    with pytest.raises(ValueError):
        Combinations(4, 2).index_of(axes)


def test_index_of_rejects_mismatched_combination():
    with pytest.raises(ValueError):
        Combinations(4, 2).index_of(Combination(4, (0, 1, 2)))

    with pytest.raises(ValueError):
        Combinations(4, 2).index_of(Combination(5, (0, 1)))


def test_str():
    assert str(Combination(4, (0, 2))) == "[0,2]"
    assert str(Combination(4, ())) == "[]"


def test_axes_tables(device):
    combinations = Combinations(4, 2)

    in_axes = combinations.in_axes_table(device)
    out_axes = combinations.out_axes_table(device)

    assert in_axes.shape == (6, 2)
    assert out_axes.shape == (6, 2)

    for b in range(combinations.count()):
        combination = combinations.at(b)
        assert tuple(in_axes[b].tolist()) == combination.in_axes
        assert tuple(out_axes[b].tolist()) == combination.out_axes

    # Every row of the two tables together is a permutation of the axes.
    t.testing.assert_close(
        t.cat((in_axes, out_axes), dim=-1).sort(dim=-1).values,
        t.arange(4, device=device).expand(6, 4),
    )


def test_axes_tables_empty_sides():
    assert Combinations(3, 0).in_axes_table().shape == (1, 0)
    assert Combinations(3, 3).out_axes_table().shape == (1, 0)
