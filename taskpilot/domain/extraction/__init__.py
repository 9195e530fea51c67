# Lexical extractors: pure functions from raw text to structured values
#
#   model reply ──> json_extractor ──> action payloads
#   "tomorrow 5pm" ──> datetime_resolver ──> "YYYY-MM-DDTHH:MM"
#   "edit it to X" ──> shorthand ──> "X"
#   "grocery" ──> fuzzy_matcher ──> ranked task matches
