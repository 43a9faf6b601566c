"""clipmerge: merge trimmed video clips into one rendered file.

Probe each source, normalize every trimmed segment to a shared
resolution/fps/audio layout, then join them with crossfade transitions
(or plain concatenation) into the requested container. Temporary
artifacts live in session- and render-scoped directories that expire.
"""
