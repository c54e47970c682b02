#!/usr/bin/env python3
"""
Confirmation prompt shown before any command creates, changes or deletes AWS
resources. --yes skips it; callers may pass a confirm_callback instead of
reading stdin.
"""


def confirm(lines, title, question="Proceed? (y/n):", yes=False, confirm_callback=None, accepted=('y', 'yes')):
    """
    Show what is about to happen and ask for confirmation.

    Args:
        lines: Descriptions of the work or resources involved.
        title: Heading printed above the lines.
        question: Prompt read from stdin when there is no callback.
        yes: Skip the prompt (--yes).
        confirm_callback: If provided, called with lines; should return True to proceed.
        accepted: Lower-cased answers that count as consent.

    Returns True to proceed.
    """
    print("\n" + "=" * 60)
    print(title)
    print("=" * 60)
    for line in lines:
        print(line)
    print("=" * 60)

    if yes:
        return True
    if confirm_callback:
        return bool(confirm_callback(lines))
    try:
        answer = input(f"{question} ").strip().lower()
    except EOFError:
        answer = ""
    return answer in accepted
