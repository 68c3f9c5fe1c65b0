from __future__ import annotations

from chunk_mcp.cache import flatten_chunks
from chunk_mcp.parsers import KotlinLexicalParser

MAIN_SOURCE = """package demo
fun main() {
    println("Hello")
}

val globalVar = 42

class MyClass {
    val classVar = "x"

    fun greet(name: String): String {
        return format(name)
    }
}
"""

MODEL_SOURCE = """package demo

fun <T> List<T>.second(): T = this[1]

data class User(val name: String, val age: Int) : Comparable<User> {
    override fun compareTo(other: User): Int = age.compareTo(other.age)

    companion object {
        fun empty(): User = User("", 0)
    }
}

interface Greeter {
    fun greet(name: String): String
}

object Registry {
    var counter: Int = 0
}
"""


def test_kotlin_parser_supports_kt_and_kts() -> None:
    parser = KotlinLexicalParser()

    assert parser.supports_path("src/Main.kt") is True
    assert parser.supports_path("build.gradle.kts") is True
    assert parser.supports_path("Main.swift") is False
    assert parser.language == "kotlin"


def test_kotlin_main_file_chunks() -> None:
    roots = KotlinLexicalParser().parse_file("Main.kt", MAIN_SOURCE)

    assert [chunk.signature for chunk in roots] == ["fun main()", "val globalVar", "class MyClass"]
    main, global_var, my_class = roots
    assert main.id == "Main.kt::fun main()"
    assert main.kind == "source.lang.kotlin.decl.function"
    assert (main.start_line, main.end_line) == (2, 4)
    assert main.calls == ("println",)
    assert global_var.kind == "source.lang.kotlin.decl.property"
    assert global_var.content == "val globalVar = 42"
    assert my_class.kind == "source.lang.kotlin.decl.class"
    assert [child.signature for child in my_class.children] == [
        "val classVar",
        "fun greet(name: String): String",
    ]
    greet = my_class.children[1]
    assert greet.kind == "source.lang.kotlin.decl.function.method"
    assert greet.calls == ("format",)
    assert (greet.start_line, greet.end_line) == (11, 13)


def test_kotlin_expression_bodies_generics_and_receivers() -> None:
    roots = KotlinLexicalParser().parse_file("Model.kt", MODEL_SOURCE)

    second = roots[0]
    assert second.signature == "fun <T> List<T>.second(): T"
    assert second.name == "second"
    assert second.content == "fun <T> List<T>.second(): T = this[1]"
    assert (second.start_line, second.end_line) == (3, 3)


def test_kotlin_type_variants_and_members() -> None:
    chunks = {
        chunk.signature: chunk
        for chunk in flatten_chunks(KotlinLexicalParser().parse_file("Model.kt", MODEL_SOURCE))
    }

    user = chunks["data class User(val name: String, val age: Int) : Comparable<User>"]
    assert user.kind == "source.lang.kotlin.decl.class.data"
    assert (user.start_line, user.end_line) == (5, 11)

    compare = chunks["fun compareTo(other: User): Int"]
    assert compare.kind == "source.lang.kotlin.decl.function.method"
    assert compare.content == "override fun compareTo(other: User): Int = age.compareTo(other.age)"

    companion = chunks["companion object"]
    assert companion.kind == "source.lang.kotlin.decl.object.companion"
    assert companion.name == "Companion"
    assert chunks["fun empty(): User"].calls == ("User",)

    assert chunks["interface Greeter"].kind == "source.lang.kotlin.decl.interface"
    abstract_greet = chunks["fun greet(name: String): String"]
    assert abstract_greet.content == "fun greet(name: String): String"
    assert abstract_greet.calls == ()

    assert chunks["object Registry"].kind == "source.lang.kotlin.decl.object"
    assert chunks["var counter: Int"].kind == "source.lang.kotlin.decl.property"


def test_kotlin_strings_and_comments_do_not_open_scopes() -> None:
    source = "\n".join(
        [
            "// fun hidden() {",
            "fun visible() {",
            '    val text = "} fun fake() {"',
            "    val c = '}'",
            "    run()",
            "}",
            "fun after() = Unit",
        ]
    )

    roots = KotlinLexicalParser().parse_file("Strings.kt", source)

    assert [chunk.signature for chunk in roots] == ["fun visible()", "fun after()"]
    assert roots[0].calls == ("run",)
    assert (roots[0].start_line, roots[0].end_line) == (2, 6)
