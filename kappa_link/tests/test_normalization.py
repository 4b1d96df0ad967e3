# Copyright 2019-present Kensho Technologies, LLC.
import unittest

from ..normalization import add_typename, capitalize_first_letter


class NormalizationTests(unittest.TestCase):
    def test_capitalize_first_letter(self) -> None:
        self.assertEqual("OnItem", capitalize_first_letter("onItem"))
        self.assertEqual("Items", capitalize_first_letter("items"))
        self.assertEqual("X", capitalize_first_letter("x"))
        self.assertEqual("", capitalize_first_letter(""))

    def test_scalars_are_unchanged(self) -> None:
        for value in (None, 0, 1.5, "text", True):
            self.assertEqual(value, add_typename(value, "field"))

    def test_mapping_gets_typename(self) -> None:
        data = {"id": "x1"}
        result = add_typename(data, "onItem")
        self.assertEqual({"id": "x1", "__typename": "OnItem"}, result)
        # The input is not mutated.
        self.assertEqual({"id": "x1"}, data)

    def test_existing_typename_is_kept(self) -> None:
        data = {"id": "x1", "__typename": "Item"}
        self.assertEqual(data, add_typename(data, "onItem"))

    def test_list_is_normalized_element_wise(self) -> None:
        data = [{"id": "a"}, {"id": "b", "__typename": "Special"}, "scalar", None]
        result = add_typename(data, "items")
        expected_result = [
            {"id": "a", "__typename": "Items"},
            {"id": "b", "__typename": "Special"},
            "scalar",
            None,
        ]
        self.assertEqual(expected_result, result)
        self.assertEqual({"id": "a"}, data[0])

    def test_tuple_becomes_list(self) -> None:
        self.assertEqual([{"id": "a", "__typename": "Items"}], add_typename(({"id": "a"},), "items"))

    def test_normalization_is_idempotent(self) -> None:
        for data in ({"id": "x1"}, [{"id": "a"}, {"id": "b"}], "text", None):
            once = add_typename(data, "items")
            self.assertEqual(once, add_typename(once, "items"))
