"""Tech tree graph engine.

The graph store syncs the node set and layout with key-value storage, the
ancestor deriver highlights prerequisites of the focused goal, and the
TechTree session applies structural edits that keep nodes, unlocks edges
and layout columns consistent.
"""
