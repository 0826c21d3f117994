from recipebook.models import Recipe
from recipebook.search import PageRequest, RecipeQuery, parse_ingredient_list


def recipe(name: str, ingredients: list[str]) -> Recipe:
    return Recipe(
        id="b" * 20,
        name=name,
        description="",
        ingredients=ingredients,
        instructions="",
    )


def test_parse_ingredient_list_trims_and_drops_blanks():
    assert parse_ingredient_list(" flour , sugar,, ") == ["flour", "sugar"]
    assert parse_ingredient_list(None) == []
    assert parse_ingredient_list("") == []


def test_name_match_is_case_insensitive_substring():
    query = RecipeQuery.from_params("CAKE", None)

    assert query.matches(recipe("Chocolate cake", []))
    assert query.matches(recipe("Cupcakes", []))
    assert not query.matches(recipe("Brownies", []))


def test_every_listed_ingredient_must_be_present():
    query = RecipeQuery.from_params(None, "flour, sugar")

    assert query.matches(recipe("Sponge", ["eggs", "sugar", "flour"]))
    assert not query.matches(recipe("Bread", ["flour", "water"]))


def test_name_and_ingredients_are_combined():
    query = RecipeQuery.from_params("cake", "flour,sugar")

    assert query.matches(recipe("Carrot Cake", ["flour", "sugar", "carrot"]))
    assert not query.matches(recipe("Carrot Cake", ["flour", "carrot"]))
    assert not query.matches(recipe("Sugar cookies", ["flour", "sugar"]))


def test_empty_criteria_match_everything():
    query = RecipeQuery.from_params("  ", "")

    assert query.name is None
    assert query.matches(recipe("Anything", []))


def test_page_request_offsets():
    request = PageRequest.from_params("2", "5")

    assert request.offset == 5
    assert request.total_pages(12) == 3


def test_page_request_defaults_for_missing_or_bad_values():
    assert PageRequest.from_params(None, None) == PageRequest(page=1, limit=5)
    assert PageRequest.from_params("0", "-3") == PageRequest(page=1, limit=5)
    assert PageRequest.from_params("abc", "x") == PageRequest(page=1, limit=5)


def test_page_request_caps_limit():
    assert PageRequest.from_params("1", "500", max_limit=100).limit == 100


def test_total_pages_for_empty_catalog():
    assert PageRequest().total_pages(0) == 0
