from itertools import permutations

import anyio
import pytest

from promisegraph import Graph, InvalidDeclarationError


@pytest.mark.anyio
async def test_value_primitive(graph):
    graph.register_value("foo", 1)

    assert await graph.execute(lambda foo: foo, ["foo"]) == 1


@pytest.mark.anyio
async def test_value_is_same_object(graph):
    original = {"id": 123, "phone": 911}
    graph.register_value("bar", original)

    assert await graph.execute(lambda bar: bar, ["bar"]) is original


@pytest.mark.anyio
async def test_values_independent_of_registration_order(graph):
    graph.register_value("age", 1337)
    graph.register_value("name", "Tuan")
    graph.register_value("data", {"id": 123, "phone": 911})

    result = await graph.execute(
        lambda name, data, age: (name, data, age), ["name", "data", "age"]
    )

    assert result == ("Tuan", {"phone": 911, "id": 123}, 1337)


@pytest.mark.anyio
async def test_function_as_value(graph):
    def callback():
        return "called"

    graph.register_value("callback", callback)

    assert await graph.execute(lambda callback: callback(), ["callback"]) == "called"


@pytest.mark.anyio
async def test_async_computation(graph):
    graph.register_value("jwt", 1)

    @graph.computation("account", ["jwt"])
    async def account(jwt):
        await anyio.sleep(0.001)
        return {"id": jwt}

    assert await graph.execute(lambda account: account, ["account"]) == {"id": 1}


@pytest.mark.anyio
async def test_computation_registered_before_its_dependency(graph):
    @graph.computation("account", ["jwt"])
    async def account(jwt):
        return {"id": jwt}

    graph.register_value("jwt", 1)

    assert await graph.execute(lambda account: account, ["account"]) == {"id": 1}


@pytest.mark.anyio
async def test_no_argument_computation(graph):
    @graph.computation("x", [])
    async def x():
        return 1

    assert await graph.execute(lambda x: x, ["x"]) == 1


@pytest.mark.anyio
async def test_computation_in_lexical_closure(graph):
    graph.register_value("x", 1)
    y = 2

    async def f(x):
        return x + y

    graph.register_computation("y", ["x"], f)

    assert await graph.execute(lambda y: y, ["y"]) == 3


@pytest.mark.anyio
async def test_computation_depending_on_computation(graph):
    graph.register_value("jwt", 1)

    @graph.computation("account", ["jwt"])
    async def account(jwt):
        await anyio.sleep(0.001)
        return {"id": jwt}

    @graph.computation("campaign", ["account"])
    async def campaign(account):
        await anyio.sleep(0.001)
        return {"id": 123, "account_id": account["id"]}

    assert await graph.execute(lambda campaign: campaign, ["campaign"]) == {
        "id": 123,
        "account_id": 1,
    }

    for order in (["campaign", "account"], ["account", "campaign"]):
        result = await graph.execute(lambda *values: dict(zip(order, values)), order)
        assert result == {"account": {"id": 1}, "campaign": {"id": 123, "account_id": 1}}


@pytest.mark.anyio
async def test_positional_injection_follows_declared_order(graph):
    graph.register_value("a", "a")
    graph.register_value("b", "b")

    @graph.computation("ordered", ["b", "a"])
    async def ordered(first, second):
        return first + second

    assert await graph.execute(lambda ordered: ordered, ["ordered"]) == "ba"


@pytest.mark.anyio
async def test_shared_value_dependency(graph):
    graph.register_value("num", 10)

    @graph.computation("double", ["num"])
    async def double(num):
        return num * 2

    @graph.computation("half", ["num"])
    async def half(num):
        return num / 2

    assert await graph.execute(lambda d, h: (d, h), ["double", "half"]) == (20, 5)


@pytest.mark.anyio
async def test_bare_value_is_wrapped(graph):
    graph.register_value("x", 1)
    graph.register_computation("y", ["x"], lambda x: x + 1)

    with pytest.warns(UserWarning, match="y produced \\(2\\) which is not awaitable"):
        assert await graph.execute(lambda y: y, ["y"]) == 2


@pytest.mark.anyio
async def test_bare_value_warning_names_the_callable(graph):
    graph.register_value("x", 1)

    def plus_one(x):
        return x + 1

    graph.register_computation("y", ["x"], plus_one)

    with pytest.warns(UserWarning) as record:
        await graph.execute(lambda y: y, ["y"])

    assert str(record[0].message).endswith(
        "Declared by test_bare_value_warning_names_the_callable.<locals>.plus_one."
    )


@pytest.mark.anyio
async def test_bare_value_warning_can_be_disabled(recwarn):
    graph = Graph(warn_on_bare_result=False)
    graph.register_value("x", 1)
    graph.register_computation("y", ["x"], lambda x: x + 1)

    assert await graph.execute(lambda y: y, ["y"]) == 2
    assert not [w for w in recwarn if issubclass(w.category, UserWarning)]


@pytest.mark.anyio
async def test_async_entry(graph):
    graph.register_value("x", 1)

    async def entry(x):
        await anyio.sleep(0)
        return x * 10

    assert await graph.execute(entry, ["x"]) == 10


@pytest.mark.anyio
async def test_entry_without_dependencies(graph):
    assert await graph.execute(lambda: "done", []) == "done"


@pytest.mark.anyio
async def test_entry_dependencies_inferred(graph):
    graph.register_value("num", 1)

    @graph.computation("foo")
    async def foo(num):
        return num + 1

    assert await graph.execute(lambda num, foo: (num, foo)) == (1, 2)


@pytest.mark.anyio
async def test_entry_with_undeclarable_dependencies(graph):
    with pytest.raises(InvalidDeclarationError):
        await graph.execute(lambda *values: values)


@pytest.mark.anyio
async def test_graph_executes_more_than_once(graph):
    graph.register_value("x", 1)

    @graph.computation("y", ["x"])
    async def y(x):
        return x + 1

    assert [await graph.execute(lambda y: y, ["y"]) for _ in range(3)] == [2, 2, 2]


async def _times(factor, value):
    await anyio.sleep(0.001)
    return factor * value


def _chain_graph():
    graph = Graph()
    graph.register_value("a", 2)
    graph.register_computation("b", ["a"], lambda a: _times(3, a))
    graph.register_computation("c", ["b"], lambda b: _times(5, b))
    graph.register_computation("d", ["c"], lambda c: _times(7, c))
    return graph, {"b": 6, "c": 30, "d": 210}


def _diamond_graph(d_dependencies):
    graph = Graph()
    graph.register_value("a", 2)
    graph.register_computation("b", ["a"], lambda a: _times(3, a))
    graph.register_computation("c", ["b"], lambda b: _times(5, b))
    graph.register_computation(
        "d", d_dependencies, lambda x, y: _times(7, x * y)
    )
    return graph, {"b": 6, "c": 30, "d": 7 * 30 * 6}


@pytest.mark.anyio
@pytest.mark.parametrize(
    "graph_and_expected",
    (
        _chain_graph(),
        _diamond_graph(["b", "c"]),
        _diamond_graph(["c", "b"]),
    ),
    ids=("d->c->b->a", "d->[b, c]", "d->[c, b]"),
)
async def test_resolution_independent_of_parameter_order(graph_and_expected):
    graph, expected = graph_and_expected

    results = {}

    async def _execute(order):
        results[order] = await graph.execute(
            lambda *values: dict(zip(order, values)), order
        )

    async with anyio.create_task_group() as tg:
        for order in permutations("bcd"):
            tg.start_soon(_execute, order)

    assert len(results) == 6
    assert all(result == expected for result in results.values())


def test_run_blocking():
    graph = Graph()
    graph.register_value("x", 1)

    @graph.computation("y", ["x"])
    async def y(x):
        await anyio.sleep(0)
        return x + 1

    assert graph.run(lambda y: y, ["y"]) == 2


def test_run_blocking_on_trio():
    graph = Graph(async_backend="trio")
    graph.register_value("x", 1)

    assert graph.run(lambda x: x, ["x"]) == 1


@pytest.mark.anyio
async def test_run_blocking_inside_event_loop(graph):
    graph.register_value("x", 1)

    with pytest.raises(RuntimeError, match="Use `await graph.execute"):
        graph.run(lambda x: x, ["x"])


@pytest.mark.anyio
async def test_max_concurrency():
    graph = Graph(max_concurrency=2)
    running = 0
    peak = 0

    async def _work(i):
        nonlocal running, peak
        running += 1
        peak = max(peak, running)
        await anyio.sleep(0.01)
        running -= 1
        return i

    names = [f"w{i}" for i in range(6)]
    for i, name in enumerate(names):
        graph.register_value(f"i{i}", i)
        graph.register_computation(name, [f"i{i}"], _work)

    assert await graph.execute(lambda *values: list(values), names) == list(range(6))
    assert peak == 2


@pytest.mark.anyio
async def test_independent_branches_run_concurrently(graph):
    started = []

    async def _branch(name):
        started.append(name)
        await anyio.sleep(0.2)
        return name

    graph.register_value("left_name", "left")
    graph.register_value("right_name", "right")
    graph.register_computation("left", ["left_name"], _branch)
    graph.register_computation("right", ["right_name"], _branch)

    with anyio.fail_after(0.35):
        result = await graph.execute(lambda l, r: (l, r), ["left", "right"])

    assert result == ("left", "right")
    assert sorted(started) == ["left", "right"]
