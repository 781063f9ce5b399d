from benchbro import Case
from jsonpathwalk import Configuration, JsonPathWalk, LRUPathCache, NoopPathCache

cached = JsonPathWalk(Configuration(cache=LRUPathCache()))
uncached = JsonPathWalk(Configuration(cache=NoopPathCache()))

read_case = Case(
    name="read",
    case_type="cpu",
    metric_type="time",
    tags=["jsonpathwalk", "read"],
    warmup_iterations=5,
    min_iterations=50,
    repeats=10,
)

ITEMS = {
    "items": [
        {"id": index, "price": index % 17, "inStock": index % 3 == 0}
        for index in range(200)
    ]
}


@read_case.benchmark()
def definite_path():
    data = {"a": {"b": {"c": 1}}}
    path = "$.a.b.c"

    cached.read(data, path)


@read_case.benchmark()
def definite_path_without_cache():
    data = {"a": {"b": {"c": 1}}}
    path = "$.a.b.c"

    uncached.read(data, path)


@read_case.benchmark()
def filter_and_function():
    path = "$.items[?(@.price < 10 && @.inStock == true)].price.avg()"

    cached.read(ITEMS, path)


@read_case.benchmark()
def deep_scan():
    data = {"a": {"b": {"c": {"d": {"e": {"f": {"g": {"h": {"i": {"price": 1}}}}}}}}}}
    path = "$..price"

    cached.read(data, path)
