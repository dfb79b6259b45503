from pytoplc.plccontrol import PlcWeightWriter, weight_to_words
