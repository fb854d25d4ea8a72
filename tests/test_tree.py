import pytest

from nestmux.tree import (
    FrozenDict,
    LeafKey,
    Node,
    _construct_route_tree,
    _merge_trees,
    add_route,
    find_handler,
    leaf_key,
    parse_path,
)


def test__construct_route_tree() -> None:
    user_profile_handler = lambda: "user_profile_handler"  # noqa: E731
    tree = _construct_route_tree(
        LeafKey.GET, "/user/{id}/profile", user_profile_handler
    )
    expected_tree = Node(
        children=FrozenDict(
            {
                "user": Node(
                    wildcard=Node(
                        children=FrozenDict(
                            {
                                "profile": Node(
                                    children=FrozenDict(
                                        {
                                            LeafKey.GET: Node(
                                                handler=user_profile_handler,
                                                route="/user/{id}/profile",
                                                names=("id",),
                                            )
                                        }
                                    )
                                )
                            }
                        )
                    )
                )
            }
        )
    )
    assert tree == expected_tree


def test__construct_route_tree_trailing_slash() -> None:
    static_handler = lambda: "static_handler"  # noqa: E731
    tree = _construct_route_tree(LeafKey.ANY_HTTP, "/static/", static_handler)
    expected_tree = Node(
        children=FrozenDict(
            {
                "static": Node(
                    catchall=Node(
                        children=FrozenDict(
                            {
                                LeafKey.ANY_HTTP: Node(
                                    handler=static_handler,
                                    route="/static/",
                                    names=("",),
                                )
                            }
                        )
                    )
                )
            }
        )
    )
    assert tree == expected_tree


def test__merge_trees() -> None:
    user_profile_handler = lambda: "user_profile_handler"  # noqa: E731
    user_id_handler = lambda: "user_id_handler"  # noqa: E731
    tree1 = _construct_route_tree(
        LeafKey.GET, "/user/{id}/profile", user_profile_handler
    )
    tree2 = _construct_route_tree(LeafKey.GET, "/user/{user_id}", user_id_handler)

    tree = _merge_trees(tree1, tree2)

    expected_tree = Node(
        children=FrozenDict(
            {
                "user": Node(
                    wildcard=Node(
                        children=FrozenDict(
                            {
                                LeafKey.GET: Node(
                                    handler=user_id_handler,
                                    route="/user/{user_id}",
                                    names=("user_id",),
                                ),
                                "profile": Node(
                                    children=FrozenDict(
                                        {
                                            LeafKey.GET: Node(
                                                handler=user_profile_handler,
                                                route="/user/{id}/profile",
                                                names=("id",),
                                            )
                                        }
                                    )
                                ),
                            }
                        )
                    )
                )
            }
        )
    )
    assert tree == expected_tree


def test_add_route_same_path_different_methods() -> None:
    get_handler = lambda: "get"  # noqa: E731
    post_handler = lambda: "post"  # noqa: E731
    tree = add_route(Node(), LeafKey.GET, "/user", get_handler)
    tree = add_route(tree, LeafKey.POST, "/user", post_handler)

    user = tree.children["user"]
    assert user.children[LeafKey.GET].handler is get_handler
    assert user.children[LeafKey.POST].handler is post_handler


@pytest.mark.parametrize(
    "first, second, match",
    [
        ("/user", "/user", "'/user' conflicts with '/user'"),
        ("/user/{id}", "/user/{name}", "'/user/{name}' conflicts with '/user/{id}'"),
        ("/static/{path...}", "/static/{file...}", "conflicts with '/static/{path...}'"),
        ("/files/", "/files/{rest...}", "'/files/{rest...}' conflicts with '/files/'"),
    ],
)
def test_add_route_conflicts(first: str, second: str, match: str) -> None:
    tree = add_route(Node(), LeafKey.GET, first, lambda: "first")
    with pytest.raises(ValueError, match=match):
        add_route(tree, LeafKey.GET, second, lambda: "second")


def test_differently_named_wildcards_share_a_position() -> None:
    user_handler = lambda: "user"  # noqa: E731
    posts_handler = lambda: "posts"  # noqa: E731
    rename_handler = lambda: "rename"  # noqa: E731
    tree = add_route(Node(), LeafKey.GET, "/users/{id}", user_handler)
    tree = add_route(tree, LeafKey.GET, "/users/{user_id}/posts", posts_handler)
    tree = add_route(tree, LeafKey.POST, "/users/{name}", rename_handler)

    handler, params, route, _ = find_handler("/users/7", LeafKey.GET, tree)
    assert (handler, params, route) == (user_handler, {"id": "7"}, "/users/{id}")

    handler, params, route, _ = find_handler("/users/7/posts", LeafKey.GET, tree)
    assert handler is posts_handler
    assert params == {"user_id": "7"}
    assert route == "/users/{user_id}/posts"

    handler, params, _, _ = find_handler("/users/7", LeafKey.POST, tree)
    assert (handler, params) == (rename_handler, {"name": "7"})


def test_subtree_and_named_catchall_under_different_methods() -> None:
    files_handler = lambda: "files"  # noqa: E731
    upload_handler = lambda: "upload"  # noqa: E731
    tree = add_route(Node(), LeafKey.GET, "/files/", files_handler)
    tree = add_route(tree, LeafKey.PUT, "/files/{name...}", upload_handler)

    handler, params, _, _ = find_handler("/files/a/b", LeafKey.GET, tree)
    assert (handler, params) == (files_handler, {})

    handler, params, _, _ = find_handler("/files/a/b", LeafKey.PUT, tree)
    assert (handler, params) == (upload_handler, {"name": "a/b"})


@pytest.mark.parametrize(
    "path, expected",
    [
        ("/", [("catchall", "")]),
        ("/{$}", [("literal", "")]),
        ("/api/foo", [("literal", "api"), ("literal", "foo")]),
        ("/api/", [("literal", "api"), ("catchall", "")]),
        ("/api//foo", [("literal", "api"), ("literal", ""), ("literal", "foo")]),
        ("/user/{id}", [("literal", "user"), ("wildcard", "id")]),
        ("/static/{path...}", [("literal", "static"), ("catchall", "path")]),
        ("/user/{id}/{$}", [("literal", "user"), ("wildcard", "id"), ("literal", "")]),
    ],
)
def test_parse_path(path: str, expected: list[tuple[str, str]]) -> None:
    assert parse_path(path) == expected


@pytest.mark.parametrize(
    "path, match",
    [
        ("api", "path must start with '/'"),
        ("", "path must start with '/'"),
        ("/user/x{id}", "bad wildcard segment"),
        ("/user/{id}x", "bad wildcard segment"),
        ("/user/{}", "bad wildcard name"),
        ("/user/{1d}", "bad wildcard name"),
        ("/{$}/user", "not at end"),
        ("/{path...}/user", "not at end"),
        ("/{id}/{id}", "duplicate wildcard name 'id'"),
    ],
)
def test_parse_path_errors(path: str, match: str) -> None:
    with pytest.raises(ValueError, match=match):
        parse_path(path)


@pytest.mark.parametrize(
    "method, expected",
    [
        ("", LeafKey.ANY_HTTP),
        ("GET", LeafKey.GET),
        ("get", None),
        ("PURGE", None),
        ("ANY_HTTP", None),
    ],
)
def test_leaf_key(method: str, expected: LeafKey | None) -> None:
    assert leaf_key(method) is expected


# handlers
home_handler = lambda: "home"  # noqa: E731
root_handler = lambda: "root"  # noqa: E731
admin_home_handler = lambda: "admin_home"  # noqa: E731
admin_user_handler = lambda: "admin_user"  # noqa: E731
admin_user_rename_handler = lambda: "admin_user_rename"  # noqa: E731
admin_user_transaction_view_handler = lambda: "admin_user_transaction_view"  # noqa: E731
admin_user_me_handler = lambda: "admin_user_me"  # noqa: E731
static_handler = lambda: "static"  # noqa: E731
files_handler = lambda: "files"  # noqa: E731

tree: Node = Node()
for _method, _path, _handler in [
    (LeafKey.ANY_HTTP, "/", home_handler),
    (LeafKey.GET, "/{$}", root_handler),
    (LeafKey.GET, "/admin", admin_home_handler),
    (LeafKey.GET, "/admin/user/{id}", admin_user_handler),
    (LeafKey.GET, "/admin/user/me", admin_user_me_handler),
    (LeafKey.POST, "/admin/user/{id}/rename", admin_user_rename_handler),
    (LeafKey.GET, "/admin/user/{id}/transaction/{tx}", admin_user_transaction_view_handler),
    (LeafKey.GET, "/static/{path...}", static_handler),
    (LeafKey.PUT, "/files/", files_handler),
]:
    tree = add_route(tree, _method, _path, _handler)


@pytest.mark.parametrize(
    "path, method, expected_handler, expected_params, expected_route",
    [
        # exact trailing slash wins over the root subtree
        ("/", LeafKey.GET, root_handler, {}, "/{$}"),
        # root subtree, any method
        ("/", LeafKey.PATCH, home_handler, {}, "/"),
        ("/some/nonexistent/route", LeafKey.GET, home_handler, {}, "/"),
        # simple, with method
        ("/admin", LeafKey.GET, admin_home_handler, {}, "/admin"),
        # HEAD falls back to GET
        ("/admin", LeafKey.HEAD, admin_home_handler, {}, "/admin"),
        # unknown method falls back to any method
        ("/admin/", None, home_handler, {}, "/"),
        # literal beats wildcard
        ("/admin/user/me", LeafKey.GET, admin_user_me_handler, {}, "/admin/user/me"),
        # wildcard param
        ("/admin/user/1", LeafKey.GET, admin_user_handler, {"id": "1"}, "/admin/user/{id}"),
        # backtracks from the literal branch into the wildcard
        (
            "/admin/user/me/rename",
            LeafKey.POST,
            admin_user_rename_handler,
            {"id": "me"},
            "/admin/user/{id}/rename",
        ),
        # multiple wildcard params
        (
            "/admin/user/1/transaction/2",
            LeafKey.GET,
            admin_user_transaction_view_handler,
            {"id": "1", "tx": "2"},
            "/admin/user/{id}/transaction/{tx}",
        ),
        # catchall param
        (
            "/static/lib/datastar.min.js",
            LeafKey.GET,
            static_handler,
            {"path": "lib/datastar.min.js"},
            "/static/{path...}",
        ),
        # trailing slash subtree
        ("/files/", LeafKey.PUT, files_handler, {}, "/files/"),
        ("/files/a/b.txt", LeafKey.PUT, files_handler, {}, "/files/"),
    ],
)
def test_find_handler(
    path: str,
    method: LeafKey | None,
    expected_handler: object,
    expected_params: dict[str, str],
    expected_route: str,
) -> None:
    handler, params, route, allowed = find_handler(path, method, tree)
    assert handler is expected_handler
    assert params == expected_params
    assert route == expected_route
    assert allowed == ()


def test_find_handler_not_found() -> None:
    tree = add_route(Node(), LeafKey.GET, "/admin", admin_home_handler)
    tree = add_route(tree, LeafKey.GET, "/user/{id}", admin_user_handler)

    for path in ("/missing", "/admin/", "/admin/extra", "/user/", "/user"):
        handler, params, route, allowed = find_handler(path, LeafKey.GET, tree)
        assert handler is None
        assert params == {}
        assert route == ""
        assert allowed == ()


def test_find_handler_method_not_allowed() -> None:
    tree = add_route(Node(), LeafKey.GET, "/admin", admin_home_handler)
    tree = add_route(tree, LeafKey.POST, "/{section}", admin_user_handler)

    handler, params, route, allowed = find_handler("/admin", LeafKey.DELETE, tree)

    assert handler is None
    assert params == {}
    assert route == ""
    assert allowed == ("GET", "HEAD", "POST")


def test_find_handler_falls_back_to_root_subtree() -> None:
    handler, _, _, allowed = find_handler("/files/x", LeafKey.GET, tree)
    # "/files/" only allows PUT but "/" matches any method
    assert handler is home_handler
    assert allowed == ()


def test_frozen_dict_is_immutable() -> None:
    d = FrozenDict({"a": 1})
    with pytest.raises(TypeError, match="FrozenDict is immutable"):
        d["b"] = 2
    with pytest.raises(TypeError, match="FrozenDict is immutable"):
        d.update(b=2)
    assert hash(d) == hash(FrozenDict({"a": 1}))
