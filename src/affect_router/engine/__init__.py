"""Classification engine: vector model, rules, classifier and adaptive flow."""
