"""Plan-to-timeline transformation engine.

The engine is a pure function of its inputs: build the item forest, aggregate
time spans bottom-up, materialize visual tasks top-down, retarget dependency
links, then sequence the tasks so that every parent precedes its children.
All traversals use explicit stacks so plan depth never hits the recursion limit.
"""
