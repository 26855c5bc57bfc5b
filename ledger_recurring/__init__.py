"""
ledger_recurring -- Recurring-transaction engine.

Turns recurrence definitions ("50 EUR rent, monthly, starting Jan 31") into
concrete ledger entries, exactly once per due cycle, under concurrent sweeps,
missed runs and calendar edge cases.

Components, leaves first:
    domain.recurrence     -- pure next-date evaluation (no I/O, no state)
    services.materializer -- one cycle: due check, cursor compare-and-swap,
                             ledger insert, all in one SAVEPOINT
    services.catch_up     -- bounded, oldest-first replay of a backlog
    services.sweep        -- periodic driver with per-definition isolation

Data flows one way: sweep -> catch_up -> materializer -> recurrence, with the
materializer writing back to the definition row and to the ledger.

Architecture:
    ledger_recurring/ is a top-level package.  Nothing in ledger_kernel/
    imports from it; its models register on the kernel Base when imported.
    Correctness under concurrency rests solely on the conditional cursor
    UPDATE; no in-process or distributed locks are taken.
"""
