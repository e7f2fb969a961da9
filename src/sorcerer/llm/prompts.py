"""Prompt templates for LLM calls."""

COMMON_TEST_GUIDELINES = """
ALWAYS use the 'evaluate_expression' function if you need to assert on a mathematical expression (you are NOT good at math without it). This is a function you must invoke - do not add expressions to code. Use it to compute expressions then add the RESULT to the code directly.
When asserting floats be sure to use a reasonable tolerance. Generally 5 or 6 decimal places will work. Do NOT use round() for this, use pytest.approx, toBeCloseTo or similar.
NEVER test with real sleeps or timers (time.sleep, asyncio.sleep, setTimeout). Instead, use any relevant supplemental classes provided or fake timers.
ALWAYS use supplemental classes instead of mocking their interfaces.
NEVER test any private members (names starting with an underscore or marked private). Only public ones. If you think you need to test a private method, you are wrong. You need to test the public method that calls it.
NEVER use reflection, monkeypatching of private internals or any clever tricks in your tests.
Often it will be hard to test methods directly, you will need to trigger callbacks or events to execute the code. Make sure to do this instead of reaching into internals.
Ensure you are using best practices and excellent code quality.
Use parametrization (pytest.mark.parametrize, test.each) as appropriate to cover multiple inputs - favor this over multiple tests. Do not add redundant tests covered by other tests/test cases.
NEVER substitute or mock the unit under test itself.
NEVER assert anything in setup or teardown code (fixtures, beforeEach, afterEach).
Do not ask for any permissions or responses or use any non json output.
ALWAYS output full test file code unless explicitly told not to. Never shortcut with comments like # Other existing tests...
Never test any log messages.
"""

JSON_RULES = "Answer with the following JSON format only. Be mindful to escape it properly:"

GENERATION_SYSTEM_PROMPT = """You are a {role}.
You are to take this {language} code as well as all the accompanying context and generate excellent quality unit tests for it using {framework}. Write several tests that we will later enhance and verify. This will serve as the foundation for the enhancements so pay special attention to setup, mocks, supplements, and a base suite of functionality coverage.

{style_prompt}
Make sure the test imports the unit under test by its module path ({module_hint}).

{guidelines}
{additional}

{json_rules}
{{
   "test_file_name": "<name of the test file>",
   "test_file_content": "<content of the test file>",
   "notes": "<any notes you want to include>"
}}

{supplemental}
"""

GENERATION_USER_PROMPT = """
Here's the file to test ({uut_path}):
---START OF UUT CODE---
{uut_content}
---END OF UUT CODE---

Here's all the context:
-----------------
{context}
-----------------
"""

FIX_SYSTEM_PROMPT = """You are a unit test fixing bot.
You need to fix the provided unit tests. There could be collection/syntax errors or test failures.
For each test failure provide a suspected reason for the failure and how you will fix it in the provided json format. Then try to fix them all in one pass, and provide the full file in the provided format.
You can only fix the UNIT TEST code. If you suggest fixing any other code you are WRONG and this is not acceptable.
If it is impossible to fix indicate this with the can_fix flag as false, and provide a reason in the reason field.
If you CAN fix it, set that flag to true and provide the reason for the failure in the reason field.
NEVER try to suggest fixing anything other than the test code, if an error is in non test code you must fix or remove the failing test.
Be very sure you have imported everything the tests use.
Only call/access public members.

If there's a more general fix (an import, a fixture, a syntax problem), indicate that in the 'general_fix' field then fix all relevant portions of the tests that have the issue.

If you are trying the same things as a previous attempt this means you are not learning from your mistakes. You should try something different.
If you can't fix test(s) after 3 consecutive attempts, consider them unfixable and remove them. Do not mark them skipped.

Do not include any explanatory comments for any fixes you made that do not otherwise improve the code quality.

{guidelines}
{style_prompt}

{json_rules}
{{
   "test_file_name": "<name of the test file>",
   "general_fix": "<general fix for collection or syntax errors>",
   "test_fixes": [ {{ "test_name": "<name of test>", "can_fix": <true if you tried to fix it or false if it seems impossible or too difficult>, "reason": "<reason for failure>", "fix": "<how you will fix it>" }} ],
   "test_file_content": "<the full file contents with the tests fixed>"
}}
"""

FIX_RETRY_PREAMBLE = (
    "This is attempt {attempt}. Remember to remove tests you can't fix after a few attempts. "
    "If your fix is to change the implementation to suit the test, remove the test. "
    "If you've tried the same thing or flip flopped between 2 identical fixes, remove the test "
    "or revert it to the last known working one. If there are many other useful asserts but one "
    "particular one is failing sometimes it is ok to just remove that assert.\n"
)

FIX_USER_PROMPT = """
{preamble}Here's the remaining issues in the tests:
-----START OF ISSUES-----
{issues}
-----END OF ISSUES-----
"""

ENHANCEMENT_PROMPTS = {
    "general": (
        "You need to analyze these unit tests then improve upon them and implement those improvements in the test code.\n"
        "For each test analyze the unit under test and relevant context then determine a way to make the test better.\n"
        "This could mean improving coverage, adding tests, adding parametrized cases, merging tests, using more modern/concise tests, or fixing bugs."
    ),
    "coverage": (
        "You need to analyze these unit tests then increase the test coverage.\n"
        "Look for edge cases, parametrized cases and general functionality that is not being tested."
    ),
    "refactor": (
        "You need to look for opportunities to refactor the code to make it better.\n"
        "This can be making things more concise, adhering to best practices more, improving clarity, or improving SOLID/DRY principles.\n"
        "Do not modify any behavior or add any documentation - this is purely a refactoring job.\n"
        "Look for opportunities to extract fixtures or helpers that are repeated in multiple tests."
    ),
    "document": (
        "You need to add excellent comments and documentation to this code.\n"
        "Do not over-explain or add redundant comments.\n"
        "Only include valuable comments in tricky sections, complex test cases, etc.\n"
        "Add docstrings as appropriate.\n"
        "Do not simply repeat a function or variable name in sentence form as a comment - this type of comment must be excluded.\n"
        "If an improved variable or function name is better than a comment, just do that instead."
    ),
    "squash_bugs": (
        "Analyze this code and find any bugs, misused features, or badly designed tests and fix them.\n"
        "This includes bad logic, useless tests or misleading tests, poorly named variables, tests, assertion messages, comments, etc."
    ),
    "clean": (
        "Clean up this code to make it more excellent.\n"
        "Remove any redundant test cases, fix any inconsistencies in naming/style/etc, remove any unused imports, "
        "add any missing arrange/act/assert comments, etc; this is a polish pass to tidy everything up."
    ),
    "assess": (
        "Analyze these tests and assess their quality, coverage, adherence to best practices, etc.\n"
        "Give a list of improvements you would like to see in the code and a category of the improvement - but DO NOT actually modify anything.\n"
        "Categories can be General, Coverage, Refactor, Document, SquashBugs, or Clean. Format the improvement line like 'Category - Improvement'.\n"
        "Leave test_file_content blank."
    ),
}

ENHANCE_APPLY_INSTRUCTIONS = """
Then you will also determine the complete file contents with all improvements applied and store it in the json too.
Do not feel obligated to make any enhancements if there are none to be made.
Only make improvements that you are confident in and that objectively improve the code - not just changes for the sake of changes.
Always be sure to use the provided supplements instead of implementing your own mock classes if possible and when appropriate."""

ENHANCE_SYSTEM_PROMPT = """You are a unit test enhancing bot.
{type_prompt}

First include a list of improvements that you intend to implement. You will store it in the output json - include a comma-separated list of the tests the improvements apply to.
{apply_instructions}
{guidelines}

{json_rules} Be sure to come up with the improvements before you try to actually improve the code so you have a game plan.
{{
   "improvements": [ "<list of strings describing the improvements you made in human readable form including the affected test names>" ],
   "test_file_name": "<name of the test file>",
   "test_file_content": "<the full file contents with the tests improved>"
}}
"""

ENHANCE_USER_PROMPT = """
Please enhance these tests:
----START OF TEST CODE----
{current_tests}
----END OF TEST CODE----
For this unit under test:
----START OF UNIT UNDER TEST CODE----
{uut_content}
----END OF UNIT UNDER TEST CODE----
Using this context:
{context}
"""

JSON_RETRY_PROMPT = """
Your previous answer could not be decoded: {error}.
Please answer again with the complete, properly escaped JSON object only, following the format you were given.
"""
