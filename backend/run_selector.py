def top_level_call_indices(events):
    """Indices of ``call`` events made while no other call was open.

    A call is closed by its ``return``, or by a ``throw`` when an exception
    left it.
    """
    indices = []
    depth = 0
    for index, event in enumerate(events):
        if event.kind == "call":
            if depth == 0:
                indices.append(index)
            depth += 1
        elif event.kind in ("return", "throw") and depth > 0:
            depth -= 1
    return indices


def select_run(events):
    """Pick the run to visualize.

    A snippet that never calls anything is returned whole (definitions only).
    Otherwise the run starts at the last top-level call: a snippet that calls
    its function several times shows the final invocation.
    """
    events = list(events)
    calls = top_level_call_indices(events)
    if not calls:
        return events
    return events[calls[-1]:]
