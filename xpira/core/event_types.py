"""Event type constants published on the EventBus."""


class EventTypes:
    """Event type string constants"""

    # dialogue session lifecycle
    DIALOGUE_STARTED = "dialogue_started"
    DIALOGUE_NOT_FOUND = "dialogue_not_found"
    DIALOGUE_NODE_ENTERED = "dialogue_node_entered"
    DIALOGUE_RESPONSE_MATCHED = "dialogue_response_matched"
    DIALOGUE_RESPONSE_MISSED = "dialogue_response_missed"
    DIALOGUE_FALLBACK = "dialogue_fallback"
    DIALOGUE_ENDED = "dialogue_ended"

    # effects (EventBusEffectExecutor)
    ITEM_GIVEN = "item_given"
    ITEM_TAKEN = "item_taken"
    XP_GRANTED = "xp_granted"
    MISSION_STARTED = "mission_started"
    MISSION_COMPLETED = "mission_completed"
    WORD_TAUGHT = "word_taught"
