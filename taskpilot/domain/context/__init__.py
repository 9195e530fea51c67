# Conversation context
#
# +-----------------------------+
# |      Durable storage        |   (one record: every conversation)
# |-----------------------------|
# | title, messages             |
# | tasks snapshot              |
# +-----------------------------+
#         load ^   | flush
#              |   v
# +-----------------------------+
# |      Live session           |   (active conversation only)
# |-----------------------------|
# | task store, id counter      |
# | last referenced task        |
# +-----------------------------+
#
# The live store and the stored snapshot never share mutable structure.
