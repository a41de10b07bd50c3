"""JVM diagnostics: dumps, JFR recordings, async-profiler and flamegraphs."""
