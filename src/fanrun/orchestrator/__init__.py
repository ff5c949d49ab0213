"""Bounded-concurrency orchestrator for per-item external commands.

Each item gets its own generated wrapper script that runs the rendered command,
retries it with a fixed delay, and leaves a success or failure marker file in
the run workdir.  The orchestrator never waits on a child directly: a single
control loop admits items into free worker slots, polls markers and process
handles, and reclaims slots as jobs reach a terminal state.

Why not ``concurrent.futures`` / ``multiprocessing``?
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~
The commands are opaque external processes.  A pool of Python workers would
only add an extra process layer around ``subprocess`` while still needing the
same per-item retry loop and exit classification.  Keeping retries inside the
wrapper makes a crash mid-retry look exactly like any other failure from the
orchestrator's point of view: marker absence plus process exit.
"""
