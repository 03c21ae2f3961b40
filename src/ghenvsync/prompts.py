"""Interactive prompts used when a value was not given on the command line."""

import getpass


def ask(message, default=None):
    """
    Ask for a line of text.

    Returns:
        str: The stripped answer, ``default`` if the answer is empty, or
        None if input was closed
    """
    suffix = f" [{default}] " if default else " "
    try:
        answer = input(f"{message}{suffix}").strip()
    except EOFError:
        return None
    return answer or default


def confirm(message, default=False):
    hint = "Y/n" if default else "y/N"
    answer = ask(f"{message} ({hint})")
    if not answer:
        return default
    return answer.lower() in ("y", "yes")


def choose(message, choices, default=0):
    """
    Ask the user to pick one of ``choices``.

    Args:
        message (str): Question to show
        choices (list): (value, title) tuples
        default (int): Index selected on an empty answer

    Returns:
        The chosen value, or None if input was closed
    """
    print(message)
    for number, (_, title) in enumerate(choices, start=1):
        print(f"  {number}) {title}")

    while True:
        answer = ask(f"Select 1-{len(choices)}:", default=str(default + 1))
        if answer is None:
            return None
        if answer.isdigit() and 1 <= int(answer) <= len(choices):
            return choices[int(answer) - 1][0]
        for value, _ in choices:
            if answer == value:
                return value
        print(f"Please enter a number between 1 and {len(choices)}.")


def ask_secret(secret_name):
    """Read a secret value without echoing it. Returns None if input was closed."""
    try:
        return getpass.getpass(f"Enter value for secret '{secret_name}': ")
    except EOFError:
        return None
